"""Per-application plan produced by the planner."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from appupgen.models.instructions import Instruction
from appupgen.models.release import AppChangeKind


class AppPlan(BaseModel):
    """Upgrade and downgrade instructions for one application.

    Removed applications have no new version and are reported only; they
    are never written to an appup file.
    """

    model_config = ConfigDict(frozen=True)

    application: str
    change: AppChangeKind
    old_version: str
    new_version: str | None = None
    upgrade: list[Instruction] = []
    downgrade: list[Instruction] = []
    written_to: Path | None = None

    @property
    def writable(self) -> bool:
        return self.change != AppChangeKind.REMOVED and self.new_version is not None
