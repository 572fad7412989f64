"""Directory-level diff of two artifact trees.

Files are keyed by base name without extension. Names present on one side
only land in ``only_old`` / ``only_new``; names on both sides are run
through the artifact comparator and end up in ``changed`` or
``unchanged``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from appupgen.core.comparator import VOLATILE_CHUNKS, compare_artifacts
from appupgen.models.artifacts import ArtifactComparison, DirectoryDiff, ModulePair

logger = logging.getLogger(__name__)

Comparator = Callable[..., ArtifactComparison]


class DirectoryError(RuntimeError):
    """Raised when a diff input is not a directory."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Not a directory: {path}")


def artifact_files(directory: str | Path, extension: str = ".beam") -> dict[str, Path]:
    """Map module name -> artifact path for every artifact in *directory*."""
    directory = Path(directory)
    if not directory.is_dir():
        raise DirectoryError(directory)
    return {
        path.name[: -len(extension)]: path
        for path in sorted(directory.glob(f"*{extension}"))
        if path.is_file()
    }


def diff_directories(
    old_dir: str | Path,
    new_dir: str | Path,
    *,
    extension: str = ".beam",
    volatile: Iterable[str] = VOLATILE_CHUNKS,
    comparator: Comparator = compare_artifacts,
) -> DirectoryDiff:
    """Compute (only-old, only-new, changed) for two artifact directories."""
    old_files = artifact_files(old_dir, extension)
    new_files = artifact_files(new_dir, extension)
    volatile = frozenset(volatile)

    old_names = set(old_files)
    new_names = set(new_files)
    both = sorted(old_names & new_names)

    changed: list[ModulePair] = []
    unchanged: set[str] = set()
    for name in both:
        result = comparator(old_files[name], new_files[name], volatile=volatile)
        if result.equal:
            unchanged.add(name)
        else:
            logger.debug("%s changed: %s", name, result.reason)
            changed.append(
                ModulePair(name=name, old_path=old_files[name], new_path=new_files[name])
            )

    diff = DirectoryDiff(
        old_dir=Path(old_dir),
        new_dir=Path(new_dir),
        only_old=frozenset(old_names - new_names),
        only_new=frozenset(new_names - old_names),
        changed=changed,
        unchanged=frozenset(unchanged),
        extension=extension,
    )
    logger.debug("artifacts:")
    logger.debug("   added: %s", sorted(diff.only_new))
    logger.debug("   deleted: %s", sorted(diff.only_old))
    logger.debug("   changed: %s", diff.changed_names)
    return diff
