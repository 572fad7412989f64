"""Artifact, comparison and directory diff models (all frozen)."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ChunkIndexEntry(BaseModel):
    """Location of one chunk inside a container; the payload is not copied."""

    model_config = ConfigDict(frozen=True)

    tag: str
    offset: int  # first payload byte
    size: int


class ContainerIndex(BaseModel):
    """Result of an index-mode read."""

    model_config = ConfigDict(frozen=True)

    module: str
    source: str
    entries: list[ChunkIndexEntry]

    @property
    def tags(self) -> list[str]:
        """Chunk tags in container order."""
        return [entry.tag for entry in self.entries]


class ContainerContents(BaseModel):
    """Result of a chunk-mode read: tag -> payload, in container order.

    Optional tags that were not present map to ``None``.
    """

    model_config = ConfigDict(frozen=True)

    module: str
    source: str
    chunks: dict[str, bytes | None]


class ComparisonOutcome(str, Enum):
    EQUAL = "equal"
    DIFFERENT = "different"


class ArtifactComparison(BaseModel):
    """Outcome of comparing two artifacts of the same module."""

    model_config = ConfigDict(frozen=True)

    module: str
    outcome: ComparisonOutcome
    chunk: str | None = None  # first differing chunk tag, when known
    reason: str = ""

    @property
    def equal(self) -> bool:
        return self.outcome == ComparisonOutcome.EQUAL


class ModulePair(BaseModel):
    """A module present on both sides whose artifacts differ."""

    model_config = ConfigDict(frozen=True)

    name: str
    old_path: Path
    new_path: Path


class DirectoryDiff(BaseModel):
    """Set algebra over two artifact directories."""

    model_config = ConfigDict(frozen=True)

    old_dir: Path
    new_dir: Path
    only_old: frozenset[str] = frozenset()
    only_new: frozenset[str] = frozenset()
    changed: list[ModulePair] = []
    unchanged: frozenset[str] = frozenset()
    extension: str = ".beam"

    @property
    def changed_names(self) -> list[str]:
        return [pair.name for pair in self.changed]

    def old_path(self, name: str) -> Path:
        return self.old_dir / f"{name}{self.extension}"

    def new_path(self, name: str) -> Path:
        return self.new_dir / f"{name}{self.extension}"
