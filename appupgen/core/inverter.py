"""Derives the downgrade plan from the upgrade plan.

Every instruction maps to its structural inverse; the two supervisor
child idioms are matched by exact shape and swapped as whole units. The
downgrade plan is the inverted steps in reverse order.
"""

from __future__ import annotations

from appupgen.models.instructions import (
    AddApplication,
    AddModule,
    Apply,
    DeleteModule,
    Instruction,
    LoadModule,
    RemoveApplication,
    Step,
    UpdateStateHolder,
    UpdateSupervisor,
    flatten,
)


class NotInvertibleError(ValueError):
    """Raised for an instruction or idiom with no known inverse."""


def _child_call(step: object, function: str) -> tuple[str, str] | None:
    """``(supervisor, child)`` if *step* is ``apply supervisor:function``."""
    if (
        isinstance(step, Apply)
        and step.module == "supervisor"
        and step.function == function
        and len(step.args) == 2
    ):
        return str(step.args[0]), str(step.args[1])
    return None


def invert_instruction(instruction: Instruction) -> Instruction:
    """Structural inverse of a single instruction."""
    if isinstance(instruction, (LoadModule, UpdateSupervisor, UpdateStateHolder)):
        return instruction
    if isinstance(instruction, AddModule):
        return DeleteModule(module=instruction.module)
    if isinstance(instruction, DeleteModule):
        # dependencies of a deleted module are not known
        return AddModule(module=instruction.module, deps=[])
    if isinstance(instruction, AddApplication):
        return RemoveApplication(application=instruction.application)
    if isinstance(instruction, RemoveApplication):
        return AddApplication(application=instruction.application)
    raise NotInvertibleError(f"No inverse for {instruction!r}")


def invert_idiom(steps: list[Instruction]) -> list[Instruction]:
    """Swap the new-worker and removed-worker supervisor idioms."""
    if len(steps) == 2 and isinstance(steps[0], UpdateSupervisor):
        restart = _child_call(steps[1], "restart_child")
        if restart:
            return [
                steps[1].model_copy(update={"function": "terminate_child"}),
                steps[1].model_copy(update={"function": "delete_child"}),
                steps[0],
            ]
    if len(steps) == 3 and isinstance(steps[2], UpdateSupervisor):
        terminate = _child_call(steps[0], "terminate_child")
        delete = _child_call(steps[1], "delete_child")
        if terminate and terminate == delete:
            return [steps[2], steps[0].model_copy(update={"function": "restart_child"})]
    raise NotInvertibleError(f"Unrecognized instruction group {steps!r}")


def invert_step(step: Step) -> Step:
    if isinstance(step, list):
        return invert_idiom(step)
    return invert_instruction(step)


def invert_plan(steps: list[Step]) -> list[Step]:
    """Downgrade steps for an upgrade plan (inverted, reversed)."""
    return [invert_step(step) for step in reversed(steps)]


def downgrade_instructions(steps: list[Step]) -> list[Instruction]:
    return flatten(invert_plan(steps))
