"""Release (``.rel``) models and release-level diff results."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ReleaseInfo(BaseModel):
    """One ``releases/<vsn>/<name>.rel`` file."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    erts_version: str = ""
    applications: dict[str, str] = {}  # application -> version
    path: Path | None = None


class AppChangeKind(str, Enum):
    ADDED = "added"
    UPGRADED = "upgraded"
    REMOVED = "removed"


class AppChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AppChangeKind
    application: str
    old_version: str | None = None
    new_version: str | None = None


class ReleaseDiff(BaseModel):
    """Applications added, upgraded and removed between two releases."""

    model_config = ConfigDict(frozen=True)

    added: list[AppChange] = []
    upgraded: list[AppChange] = []
    removed: list[AppChange] = []

    @property
    def changes(self) -> list[AppChange]:
        return self.added + self.upgraded + self.removed

    def without(self, applications: set[str]) -> ReleaseDiff:
        """Drop added and upgraded applications named in *applications*."""
        return ReleaseDiff(
            added=[c for c in self.added if c.application not in applications],
            upgraded=[c for c in self.upgraded if c.application not in applications],
            removed=self.removed,
        )
