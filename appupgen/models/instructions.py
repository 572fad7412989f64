"""Upgrade instruction models: a tagged union over the appup vocabulary.

Every instruction knows its Erlang term form (``to_term``); the inverse
mapping (``instruction_from_term``) turns terms read from fragment files
back into models, carrying shapes it does not recognize as
``RawInstruction``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from appupgen.core.terms import Atom, is_atom
from appupgen.models.purge import PurgeMethod


class _InstructionBase(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class AddModule(_InstructionBase):
    kind: Literal["add_module"] = "add_module"
    module: str
    deps: list[str] = []

    def to_term(self) -> Any:
        return (Atom("add_module"), Atom(self.module), [Atom(d) for d in self.deps])


class DeleteModule(_InstructionBase):
    kind: Literal["delete_module"] = "delete_module"
    module: str

    def to_term(self) -> Any:
        return (Atom("delete_module"), Atom(self.module))


class LoadModule(_InstructionBase):
    kind: Literal["load_module"] = "load_module"
    module: str
    pre_purge: PurgeMethod = PurgeMethod.BRUTAL
    post_purge: PurgeMethod = PurgeMethod.BRUTAL
    deps: list[str] = []

    def to_term(self) -> Any:
        return (
            Atom("load_module"),
            Atom(self.module),
            Atom(self.pre_purge.value),
            Atom(self.post_purge.value),
            [Atom(d) for d in self.deps],
        )


class UpdateSupervisor(_InstructionBase):
    kind: Literal["update_supervisor"] = "update_supervisor"
    module: str

    def to_term(self) -> Any:
        return (Atom("update"), Atom(self.module), Atom("supervisor"))


class UpdateStateHolder(_InstructionBase):
    """Code change with live state transfer (``{advanced, []}``)."""

    kind: Literal["update_state_holder"] = "update_state_holder"
    module: str
    pre_purge: PurgeMethod = PurgeMethod.BRUTAL
    post_purge: PurgeMethod = PurgeMethod.BRUTAL
    deps: list[str] = []

    def to_term(self) -> Any:
        return (
            Atom("update"),
            Atom(self.module),
            (Atom("advanced"), []),
            Atom(self.pre_purge.value),
            Atom(self.post_purge.value),
            [Atom(d) for d in self.deps],
        )


class AddApplication(_InstructionBase):
    kind: Literal["add_application"] = "add_application"
    application: str
    start_type: str = "permanent"

    def to_term(self) -> Any:
        return (Atom("add_application"), Atom(self.application), Atom(self.start_type))


class RemoveApplication(_InstructionBase):
    kind: Literal["remove_application"] = "remove_application"
    application: str

    def to_term(self) -> Any:
        return (Atom("remove_application"), Atom(self.application))


class Apply(_InstructionBase):
    """``{apply, {M, F, Args}}``; *args* are Erlang terms."""

    kind: Literal["apply"] = "apply"
    module: str
    function: str
    args: list[Any] = []

    def to_term(self) -> Any:
        return (Atom("apply"), (Atom(self.module), Atom(self.function), list(self.args)))


class RawInstruction(_InstructionBase):
    """Any instruction term not modelled above, passed through unchanged."""

    kind: Literal["raw"] = "raw"
    term: Any

    def to_term(self) -> Any:
        return self.term


Instruction = Annotated[
    Union[
        AddModule,
        DeleteModule,
        LoadModule,
        UpdateSupervisor,
        UpdateStateHolder,
        AddApplication,
        RemoveApplication,
        Apply,
        RawInstruction,
    ],
    Field(discriminator="kind"),
]

# A plan step is a single instruction or an idiom that must stay together.
Step = Union[Instruction, list[Instruction]]


def flatten(steps: list[Step]) -> list[Instruction]:
    flat: list[Instruction] = []
    for step in steps:
        if isinstance(step, list):
            flat.extend(step)
        else:
            flat.append(step)
    return flat


def supervisor_call(function: str, supervisor: str, child: str) -> Apply:
    """``{apply, {supervisor, Function, [Sup, Child]}}``."""
    return Apply(
        module="supervisor",
        function=function,
        args=[Atom(supervisor), Atom(child)],
    )


def _atoms(term: Any) -> list[str] | None:
    if isinstance(term, list) and all(isinstance(t, Atom) for t in term):
        return [str(t) for t in term]
    return None


def _purge(term: Any) -> PurgeMethod | None:
    if isinstance(term, Atom) and term in {m.value for m in PurgeMethod}:
        return PurgeMethod(str(term))
    return None


def instruction_from_term(term: Any) -> Instruction:
    """Model an instruction term; unknown shapes become ``RawInstruction``."""
    if isinstance(term, tuple) and term and isinstance(term[0], Atom):
        head, args = str(term[0]), term[1:]
        if head == "add_module" and len(args) in (1, 2) and isinstance(args[0], Atom):
            deps = _atoms(args[1]) if len(args) == 2 else []
            if deps is not None:
                return AddModule(module=str(args[0]), deps=deps)
        elif head == "delete_module" and len(args) == 1 and isinstance(args[0], Atom):
            return DeleteModule(module=str(args[0]))
        elif head == "load_module" and len(args) == 4 and isinstance(args[0], Atom):
            pre, post, deps = _purge(args[1]), _purge(args[2]), _atoms(args[3])
            if pre and post and deps is not None:
                return LoadModule(module=str(args[0]), pre_purge=pre, post_purge=post, deps=deps)
        elif head == "update" and len(args) == 2 and is_atom(args[1], "supervisor"):
            if isinstance(args[0], Atom):
                return UpdateSupervisor(module=str(args[0]))
        elif head == "update" and len(args) == 5 and isinstance(args[0], Atom):
            change, pre, post, deps = args[1], _purge(args[2]), _purge(args[3]), _atoms(args[4])
            if (
                change == (Atom("advanced"), [])
                and pre
                and post
                and deps is not None
            ):
                return UpdateStateHolder(
                    module=str(args[0]), pre_purge=pre, post_purge=post, deps=deps
                )
        elif head == "add_application" and len(args) == 2:
            if isinstance(args[0], Atom) and isinstance(args[1], Atom):
                return AddApplication(application=str(args[0]), start_type=str(args[1]))
        elif head == "remove_application" and len(args) == 1 and isinstance(args[0], Atom):
            return RemoveApplication(application=str(args[0]))
        elif head == "apply" and len(args) == 1:
            mfa = args[0]
            if (
                isinstance(mfa, tuple)
                and len(mfa) == 3
                and isinstance(mfa[0], Atom)
                and isinstance(mfa[1], Atom)
                and isinstance(mfa[2], list)
            ):
                return Apply(module=str(mfa[0]), function=str(mfa[1]), args=list(mfa[2]))
    return RawInstruction(term=term)
