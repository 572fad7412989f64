"""End-to-end appup planning for one application or a whole release.

Pipeline per upgraded application: directory diff, call graph,
instruction generation, supervisor child expansion, inversion, and
finally the pre/post fragment merge.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from appupgen.core.comparator import VOLATILE_CHUNKS
from appupgen.core.directory_differ import diff_directories
from appupgen.core.generator import InstructionGenerator
from appupgen.core.inverter import downgrade_instructions, invert_plan
from appupgen.core.release import app_ebin_dir
from appupgen.core.supervision import SupervisionTreeDiffer, SupervisorRuntime
from appupgen.core.version_pattern import merge_plans
from appupgen.models.fragments import VersionFragment
from appupgen.models.instructions import flatten
from appupgen.models.plan import AppPlan
from appupgen.models.purge import PurgeTable
from appupgen.models.release import AppChange, AppChangeKind, ReleaseDiff

logger = logging.getLogger(__name__)

ANY_VERSION = ".*"

Fragments = tuple[VersionFragment | None, VersionFragment | None]


class AppupPlanner:
    """Builds ``AppPlan`` objects.

    Parameters
    ----------
    purge:
        Purge policies for reloads and state-holder updates.
    runtime:
        Capability used to evaluate supervisor ``init/1``. Without one,
        changed supervisors get a plain ``UpdateSupervisor``.
    extension:
        Artifact file extension.
    volatile:
        Chunk tags ignored when comparing artifacts.
    strict_roles:
        Raise on unresolvable behaviour combinations.
    """

    def __init__(
        self,
        *,
        purge: PurgeTable | None = None,
        runtime: SupervisorRuntime | None = None,
        extension: str = ".beam",
        volatile: Iterable[str] = VOLATILE_CHUNKS,
        strict_roles: bool = True,
    ) -> None:
        self.generator = InstructionGenerator(purge, strict_roles=strict_roles)
        self.supervision = SupervisionTreeDiffer(runtime) if runtime is not None else None
        self.extension = extension
        self.volatile = frozenset(volatile)

    def plan_directories(
        self,
        application: str,
        old_version: str,
        new_version: str,
        old_dir: str | Path,
        new_dir: str | Path,
        fragments: Fragments = (None, None),
    ) -> AppPlan:
        """Plan an upgrade between two ebin directories of one application."""
        diff = diff_directories(
            old_dir, new_dir, extension=self.extension, volatile=self.volatile
        )
        steps = self.generator.generate(diff)
        if self.supervision is not None:
            steps = self.supervision.expand(steps, diff)
        upgrade = flatten(steps)
        downgrade = downgrade_instructions(steps)
        logger.debug("upgrade instructions: %s", upgrade)
        logger.debug("downgrade instructions: %s", downgrade)
        pre, post = fragments
        upgrade, downgrade = merge_plans(pre, post, old_version, new_version, upgrade, downgrade)
        return AppPlan(
            application=application,
            change=AppChangeKind.UPGRADED,
            old_version=old_version,
            new_version=new_version,
            upgrade=upgrade,
            downgrade=downgrade,
        )

    def plan_added(
        self, application: str, new_version: str, fragments: Fragments = (None, None)
    ) -> AppPlan:
        steps = self.generator.application_added(application)
        upgrade = flatten(steps)
        downgrade = flatten(invert_plan(steps))
        pre, post = fragments
        upgrade, downgrade = merge_plans(pre, post, ANY_VERSION, new_version, upgrade, downgrade)
        return AppPlan(
            application=application,
            change=AppChangeKind.ADDED,
            old_version=ANY_VERSION,
            new_version=new_version,
            upgrade=upgrade,
            downgrade=downgrade,
        )

    def plan_removed(self, application: str, old_version: str) -> AppPlan:
        steps = self.generator.application_removed(application)
        return AppPlan(
            application=application,
            change=AppChangeKind.REMOVED,
            old_version=old_version,
            upgrade=flatten(steps),
            downgrade=flatten(invert_plan(steps)),
        )

    def plan_change(
        self,
        change: AppChange,
        old_rel_path: str | Path,
        new_rel_path: str | Path,
        fragments: Fragments = (None, None),
    ) -> AppPlan:
        if change.kind == AppChangeKind.ADDED:
            return self.plan_added(change.application, change.new_version, fragments)
        if change.kind == AppChangeKind.REMOVED:
            return self.plan_removed(change.application, change.old_version)
        return self.plan_directories(
            change.application,
            change.old_version,
            change.new_version,
            app_ebin_dir(old_rel_path, change.application, change.old_version),
            app_ebin_dir(new_rel_path, change.application, change.new_version),
            fragments,
        )

    def plan_release(
        self,
        diff: ReleaseDiff,
        old_rel_path: str | Path,
        new_rel_path: str | Path,
        fragments: dict[str, Fragments] | None = None,
    ) -> list[AppPlan]:
        """One plan per added, upgraded and removed application."""
        fragments = fragments or {}
        logger.debug("generating appups for apps: %s", [c.application for c in diff.changes])
        return [
            self.plan_change(
                change, old_rel_path, new_rel_path, fragments.get(change.application, (None, None))
            )
            for change in diff.changes
        ]
