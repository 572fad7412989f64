"""Version pattern matching and fragment merging.

A pattern is a dot separated version in which a ``*`` or empty segment
matches any single version segment. Matching stops once the pattern is
exhausted, so ``"1.0"`` matches ``"1.0.34"``; a pattern longer than the
version never matches.
"""

from __future__ import annotations

import logging

from appupgen.models.fragments import Direction, VersionFragment
from appupgen.models.instructions import Instruction

logger = logging.getLogger(__name__)

WILDCARDS = frozenset({"*", ""})


def matches(pattern: str, version: str) -> bool:
    pattern_parts = pattern.split(".")
    version_parts = version.split(".")
    if len(pattern_parts) > len(version_parts):
        result = False
    else:
        result = all(
            p in WILDCARDS or p == v for p, v in zip(pattern_parts, version_parts)
        )
    logger.debug("pattern %r matches version %r: %s", pattern, version, result)
    return result


def expand(fragment: VersionFragment | None, direction: Direction, version: str) -> list[Instruction]:
    """Concatenate the instructions of every entry whose pattern matches."""
    if fragment is None:
        return []
    selected: list[Instruction] = []
    for entry in fragment.entries(direction):
        if matches(entry.pattern, version):
            selected.extend(entry.instructions)
    return selected


def expand_fragment(
    fragment: VersionFragment | None, direction: Direction, old_version: str, new_version: str
) -> list[Instruction]:
    """Fragment instructions for one direction of an ``old -> new`` step.

    Nothing is contributed unless the fragment's own pattern matches the
    new version. Entries are then selected by the old version; the same
    keys are used for both directions.
    """
    if fragment is None or not matches(fragment.pattern, new_version):
        return []
    return expand(fragment, direction, old_version)


def merge(
    pre: VersionFragment | None,
    post: VersionFragment | None,
    direction: Direction,
    old_version: str,
    new_version: str,
    instructions: list[Instruction],
) -> list[Instruction]:
    """``pre ++ instructions ++ post`` for the given direction."""
    merged = (
        expand_fragment(pre, direction, old_version, new_version)
        + list(instructions)
        + expand_fragment(post, direction, old_version, new_version)
    )
    logger.debug("%s instructions after merging fragments: %s", direction.value, merged)
    return merged


def merge_plans(
    pre: VersionFragment | None,
    post: VersionFragment | None,
    old_version: str,
    new_version: str,
    upgrade: list[Instruction],
    downgrade: list[Instruction],
) -> tuple[list[Instruction], list[Instruction]]:
    return (
        merge(pre, post, Direction.UPGRADE, old_version, new_version, upgrade),
        merge(pre, post, Direction.DOWNGRADE, old_version, new_version, downgrade),
    )
