"""Appupgen data models: all Pydantic v2, all frozen (immutable)."""

from appupgen.models.artifacts import (
    ArtifactComparison,
    ChunkIndexEntry,
    ComparisonOutcome,
    ContainerContents,
    ContainerIndex,
    DirectoryDiff,
    ModulePair,
)
from appupgen.models.fragments import Direction, FragmentEntry, VersionFragment
from appupgen.models.instructions import (
    AddApplication,
    AddModule,
    Apply,
    DeleteModule,
    Instruction,
    LoadModule,
    RawInstruction,
    RemoveApplication,
    Step,
    UpdateStateHolder,
    UpdateSupervisor,
)
from appupgen.models.modules import ModuleInfo
from appupgen.models.plan import AppPlan
from appupgen.models.purge import PurgeMethod, PurgePolicy, PurgeTable
from appupgen.models.release import AppChange, AppChangeKind, ReleaseDiff, ReleaseInfo
from appupgen.models.supervision import SupervisorDiff

__all__ = [
    # artifacts
    "ArtifactComparison",
    "ChunkIndexEntry",
    "ComparisonOutcome",
    "ContainerContents",
    "ContainerIndex",
    "DirectoryDiff",
    "ModulePair",
    # fragments
    "Direction",
    "FragmentEntry",
    "VersionFragment",
    # instructions
    "AddApplication",
    "AddModule",
    "Apply",
    "DeleteModule",
    "Instruction",
    "LoadModule",
    "RawInstruction",
    "RemoveApplication",
    "Step",
    "UpdateStateHolder",
    "UpdateSupervisor",
    # modules
    "ModuleInfo",
    # plan
    "AppPlan",
    # purge
    "PurgeMethod",
    "PurgePolicy",
    "PurgeTable",
    # release
    "AppChange",
    "AppChangeKind",
    "ReleaseDiff",
    "ReleaseInfo",
    # supervision
    "SupervisorDiff",
]
