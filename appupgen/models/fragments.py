"""Pre/post instruction fragment models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from appupgen.models.instructions import Instruction


class Direction(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class FragmentEntry(BaseModel):
    """Instructions that apply when the old version matches *pattern*."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    instructions: list[Instruction] = []


class VersionFragment(BaseModel):
    """Contents of one ``.appup.pre.src`` or ``.appup.post.src`` file.

    *pattern* gates the whole fragment against the new version; the
    entries of each direction are then selected by the old version.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str
    upgrade: list[FragmentEntry] = []
    downgrade: list[FragmentEntry] = []

    def entries(self, direction: Direction) -> list[FragmentEntry]:
        return self.upgrade if direction == Direction.UPGRADE else self.downgrade
