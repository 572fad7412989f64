"""Semantic equality of two compiled module artifacts.

Two artifacts are equal when every chunk outside the volatile set has the
same tag, in the same order, with byte-identical payload. Volatile chunks
carry compile metadata, debug information and line tables, which change
on every rebuild without changing behavior.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from appupgen.core.container import read_chunks, read_index
from appupgen.models.artifacts import ArtifactComparison, ComparisonOutcome

logger = logging.getLogger(__name__)

VOLATILE_CHUNKS: frozenset[str] = frozenset({"CInf", "Abst", "Dbgi", "Line"})


class ModuleIdentityMismatchError(RuntimeError):
    """The two artifacts being compared belong to different modules."""

    def __init__(self, module_a: str, module_b: str) -> None:
        self.module_a = module_a
        self.module_b = module_b
        super().__init__(f"Modules differ: {module_a!r} vs {module_b!r}")


def significant_tags(source: bytes | str | Path, volatile: Iterable[str]) -> list[str]:
    """Chunk tags of an artifact minus the volatile ones, in container order."""
    skip = set(volatile)
    return [tag for tag in read_index(source).tags if tag not in skip]


def compare_artifacts(
    path_a: bytes | str | Path,
    path_b: bytes | str | Path,
    *,
    volatile: Iterable[str] = VOLATILE_CHUNKS,
) -> ArtifactComparison:
    """Compare two artifacts, ignoring volatile chunks.

    Raises ``ModuleIdentityMismatchError`` when the artifacts name
    different modules; container errors propagate unchanged.
    """
    volatile = frozenset(volatile)
    contents_a = read_chunks(path_a, significant_tags(path_a, volatile))
    contents_b = read_chunks(path_b, significant_tags(path_b, volatile))

    if contents_a.module != contents_b.module:
        raise ModuleIdentityMismatchError(contents_a.module, contents_b.module)

    module = contents_a.module
    chunks_a = list(contents_a.chunks.items())
    chunks_b = list(contents_b.chunks.items())

    for (tag_a, payload_a), (tag_b, payload_b) in zip(chunks_a, chunks_b):
        if tag_a != tag_b:
            logger.debug("%s: chunk order differs (%s vs %s)", module, tag_a, tag_b)
            return ArtifactComparison(
                module=module,
                outcome=ComparisonOutcome.DIFFERENT,
                chunk=tag_a,
                reason=f"chunk sets differ ({tag_a} vs {tag_b})",
            )
        if payload_a != payload_b:
            logger.debug("%s: chunk %s differs", module, tag_a)
            return ArtifactComparison(
                module=module,
                outcome=ComparisonOutcome.DIFFERENT,
                chunk=tag_a,
                reason=f"chunk {tag_a} differs",
            )

    if len(chunks_a) != len(chunks_b):
        longer = chunks_a if len(chunks_a) > len(chunks_b) else chunks_b
        extra = longer[min(len(chunks_a), len(chunks_b))][0]
        return ArtifactComparison(
            module=module,
            outcome=ComparisonOutcome.DIFFERENT,
            chunk=extra,
            reason=f"chunk sets differ ({extra} only on one side)",
        )

    return ArtifactComparison(module=module, outcome=ComparisonOutcome.EQUAL)
