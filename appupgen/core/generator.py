"""Instruction generation from a directory diff.

One instruction per module: additions first, then changed modules, then
deletions. Dependencies are the modules a module statically calls,
restricted to the added and changed set. Application-level additions and
removals bypass this path and yield a single instruction each.
"""

from __future__ import annotations

import logging

from appupgen.core.beam import read_module_info
from appupgen.core.call_graph import CallGraphIndex, module_dependencies
from appupgen.core.roles import ChangeKind, classify_module
from appupgen.models.artifacts import DirectoryDiff, ModulePair
from appupgen.models.instructions import (
    AddApplication,
    AddModule,
    DeleteModule,
    Instruction,
    LoadModule,
    RemoveApplication,
    Step,
    UpdateStateHolder,
    UpdateSupervisor,
)
from appupgen.models.purge import PurgeTable

logger = logging.getLogger(__name__)


class InstructionGenerator:
    """Turns a ``DirectoryDiff`` into an ordered list of plan steps.

    Parameters
    ----------
    purge:
        Purge policies used for reloads and state-holder updates.
    strict_roles:
        Raise on unresolvable behaviour combinations instead of falling
        back to a plain reload.
    """

    def __init__(self, purge: PurgeTable | None = None, *, strict_roles: bool = True) -> None:
        self.purge = purge or PurgeTable()
        self.strict_roles = strict_roles

    # ------------------------------------------------------------------
    # Single instructions
    # ------------------------------------------------------------------

    def added(self, module: str, deps: list[str]) -> AddModule:
        return AddModule(module=module, deps=deps)

    def deleted(self, module: str) -> DeleteModule:
        return DeleteModule(module=module)

    def changed(self, pair: ModulePair, deps: list[str]) -> Instruction:
        """Classify a changed module from its new artifact."""
        info = read_module_info(pair.new_path)
        kind = classify_module(info, strict=self.strict_roles)
        policy = self.purge.resolve(info.name)
        if kind == ChangeKind.UPDATE_SUPERVISOR:
            return UpdateSupervisor(module=info.name)
        if kind == ChangeKind.UPDATE_STATE_HOLDER:
            return UpdateStateHolder(
                module=info.name, pre_purge=policy.pre, post_purge=policy.post, deps=deps
            )
        return LoadModule(module=info.name, pre_purge=policy.pre, post_purge=policy.post, deps=deps)

    @staticmethod
    def application_added(application: str) -> list[Step]:
        return [AddApplication(application=application)]

    @staticmethod
    def application_removed(application: str) -> list[Step]:
        return [RemoveApplication(application=application)]

    # ------------------------------------------------------------------
    # Whole diff
    # ------------------------------------------------------------------

    def generate(self, diff: DirectoryDiff, call_graph: CallGraphIndex | None = None) -> list[Step]:
        """Emit added, changed, then deleted module instructions.

        Without a *call_graph*, one is opened over the new directory for
        the duration of the call.
        """
        if call_graph is None:
            with CallGraphIndex.open([diff.new_dir], extension=diff.extension) as index:
                return self.generate(diff, index)

        touched = sorted(diff.only_new) + diff.changed_names
        deps = module_dependencies(call_graph, touched)

        steps: list[Step] = [self.added(name, deps.get(name, [])) for name in sorted(diff.only_new)]
        steps += [self.changed(pair, deps.get(pair.name, [])) for pair in diff.changed]
        steps += [self.deleted(name) for name in sorted(diff.only_old)]
        logger.debug("generated instructions: %s", steps)
        return steps
