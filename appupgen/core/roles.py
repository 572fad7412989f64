"""Behavioral role resolution and change classification.

A changed module is reloaded in one of three ways:

- ``UpdateSupervisor`` when it is a supervisor,
- ``UpdateStateHolder`` when it exports a state transfer hook
  (``code_change`` or ``system_code_change``),
- ``LoadModule`` otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from appupgen.models.modules import ModuleInfo

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Behaviours the generator knows how to upgrade."""

    SUPERVISOR = "supervisor"
    GEN_SERVER = "gen_server"
    GEN_FSM = "gen_fsm"
    GEN_STATEM = "gen_statem"
    GEN_EVENT = "gen_event"
    APPLICATION = "application"


class ChangeKind(str, Enum):
    LOAD_MODULE = "load_module"
    UPDATE_SUPERVISOR = "update_supervisor"
    UPDATE_STATE_HOLDER = "update_state_holder"


SUPPORTED_ROLES: frozenset[str] = frozenset(role.value for role in Role)

TRANSFER_HOOKS: tuple[str, ...] = ("code_change", "system_code_change")


class UnresolvedRoleError(ValueError):
    """A module declares a combination of roles with no defined precedence."""

    def __init__(self, module: str, roles: list[str]) -> None:
        self.module = module
        self.roles = roles
        super().__init__(f"{module}: no upgrade rule for behaviours {roles}")


def resolve_role(declared: Iterable[str], *, module: str = "?", strict: bool = True) -> Role | None:
    """Pick the single role that drives the upgrade path.

    Unknown behaviours are ignored. One known role wins outright; the
    pair {application, supervisor} resolves to supervisor. Any other
    combination raises ``UnresolvedRoleError`` in strict mode, or
    resolves to ``None`` (plain reload) otherwise.
    """
    known = sorted({b for b in declared if b in SUPPORTED_ROLES})
    if not known:
        return None
    if len(known) == 1:
        return Role(known[0])
    if known == [Role.APPLICATION.value, Role.SUPERVISOR.value]:
        return Role.SUPERVISOR
    if strict:
        raise UnresolvedRoleError(module, known)
    logger.warning("%s: no upgrade rule for behaviours %s, reloading as plain code", module, known)
    return None


def has_transfer_hook(info: ModuleInfo) -> bool:
    return any(info.exports_function(hook) for hook in TRANSFER_HOOKS)


def classify(role: Role | None, transfer_hook: bool) -> ChangeKind:
    """Map (role, hook) to the kind of instruction a changed module needs."""
    if role is None and not transfer_hook:
        return ChangeKind.LOAD_MODULE
    if role == Role.SUPERVISOR:
        return ChangeKind.UPDATE_SUPERVISOR
    if transfer_hook:
        return ChangeKind.UPDATE_STATE_HOLDER
    return ChangeKind.LOAD_MODULE


def classify_module(info: ModuleInfo, *, strict: bool = True) -> ChangeKind:
    role = resolve_role(info.declared_behaviours, module=info.name, strict=strict)
    return classify(role, has_transfer_hook(info))
