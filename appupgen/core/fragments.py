"""Discovery and parsing of ``.appup.pre.src`` / ``.appup.post.src`` files.

Each file holds exactly one term::

    {"1.0.34",
     [{"1.*", [{apply, {io, format, ["upgrading"]}}]}],
     [{".*", [{apply, {io, format, ["downgrading"]}}]}]}.

The first element is the new-version pattern the fragment applies to; the
two lists map old-version patterns to instructions for upgrade and
downgrade respectively.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from appupgen.core.term_text import TermSyntaxError, consult
from appupgen.core.terms import Atom
from appupgen.models.fragments import FragmentEntry, VersionFragment
from appupgen.models.instructions import instruction_from_term

logger = logging.getLogger(__name__)

PRE_SUFFIX = ".appup.pre.src"
POST_SUFFIX = ".appup.post.src"


class FragmentError(RuntimeError):
    """Raised for ambiguous or malformed fragment files."""


def find_fragment(app_dir: str | Path, suffix: str) -> Path | None:
    """The single file under *app_dir* ending in *suffix*, or ``None``."""
    root = Path(app_dir)
    if not root.is_dir():
        return None
    found = sorted(p for p in root.rglob(f"*{suffix}") if p.is_file())
    logger.debug("%s files under %s: %s", suffix, root, found)
    if not found:
        return None
    if len(found) > 1:
        raise FragmentError(
            f"More than one {suffix} file under {root}: {', '.join(map(str, found))}"
        )
    return found[0]


def _version(term: Any, path: Path) -> str:
    if isinstance(term, str) and not isinstance(term, Atom):
        return str(term)
    raise FragmentError(f"{path}: expected a version string, got {term!r}")


def _entries(term: Any, path: Path) -> list[FragmentEntry]:
    if not isinstance(term, list):
        raise FragmentError(f"{path}: expected a list of {{Pattern, Instructions}}")
    entries = []
    for item in term:
        if not (isinstance(item, tuple) and len(item) == 2 and isinstance(item[1], list)):
            raise FragmentError(f"{path}: bad fragment entry {item!r}")
        entries.append(
            FragmentEntry(
                pattern=_version(item[0], path),
                instructions=[instruction_from_term(t) for t in item[1]],
            )
        )
    return entries


def parse_fragment(terms: list[Any], path: Path) -> VersionFragment:
    if len(terms) != 1:
        raise FragmentError(f"{path}: expected exactly one term, found {len(terms)}")
    term = terms[0]
    if not (isinstance(term, tuple) and len(term) == 3):
        raise FragmentError(f"{path}: expected {{Pattern, UpEntries, DownEntries}}")
    return VersionFragment(
        pattern=_version(term[0], path),
        upgrade=_entries(term[1], path),
        downgrade=_entries(term[2], path),
    )


def load_fragment(path: str | Path | None) -> VersionFragment | None:
    """Parse a fragment file; ``None`` in, ``None`` out."""
    if path is None:
        return None
    path = Path(path)
    try:
        terms = consult(path)
    except (OSError, TermSyntaxError) as exc:
        raise FragmentError(f"Cannot read {path}: {exc}") from exc
    fragment = parse_fragment(terms, path)
    logger.debug("%s contents: %s", path, fragment)
    return fragment


def load_fragments(app_dir: str | Path) -> tuple[VersionFragment | None, VersionFragment | None]:
    """``(pre, post)`` fragments found under an application directory."""
    return (
        load_fragment(find_fragment(app_dir, PRE_SUFFIX)),
        load_fragment(find_fragment(app_dir, POST_SUFFIX)),
    )
