"""Purge policy models.

A policy is a (pre-purge, post-purge) pair. Policies are resolved per
module by exact name, falling back to the table's default.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class PurgeMethod(str, Enum):
    SOFT = "soft_purge"
    BRUTAL = "brutal_purge"


class PurgePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    pre: PurgeMethod = PurgeMethod.BRUTAL
    post: PurgeMethod = PurgeMethod.BRUTAL


class PurgeTable(BaseModel):
    """Per-module purge policies plus a default."""

    model_config = ConfigDict(frozen=True)

    default: PurgePolicy = PurgePolicy()
    modules: dict[str, PurgePolicy] = {}

    def resolve(self, module: str) -> PurgePolicy:
        return self.modules.get(module, self.default)
