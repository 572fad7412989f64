"""Supervisor child diff model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SupervisorDiff(BaseModel):
    """Worker start modules added and removed between two child specs.

    ``available`` is False when either side's specification could not be
    obtained; both lists are then empty.
    """

    model_config = ConfigDict(frozen=True)

    new_workers: list[str] = []
    removed_workers: list[str] = []
    available: bool = True

    @property
    def unchanged(self) -> bool:
        return not self.new_workers and not self.removed_workers
