"""Supervision tree diffing for changed supervisor modules.

For each side (old and new) the child specification is obtained by:

1. reading the module's abstract code and locating its ``init/1``
   definition (exactly one clause is supported),
2. folding that clause's argument pattern into a concrete value with a
   restricted evaluator (literals, lists and tuples; anything else
   becomes ``undefined``),
3. calling the module's own ``init/1`` with that value through a
   ``SupervisorRuntime``, with the module loaded only for the duration of
   the call.

Worker children are compared by start module. Each new worker yields
``[update supervisor, restart_child]``, each removed worker
``[terminate_child, delete_child, update supervisor]``. A supervisor
whose children did not change still gets a single update instruction.

Failure to obtain either side's specification is not an error: it is
logged and both worker lists are treated as empty.
"""

from __future__ import annotations

import base64
import logging
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from appupgen.core import etf
from appupgen.core.beam import AbstractCodeUnavailable, read_abstract_code
from appupgen.core.etf import TermDecodeError
from appupgen.core.term_text import format_term
from appupgen.core.terms import UNDEFINED, Atom, ImproperList, is_atom
from appupgen.models.artifacts import DirectoryDiff
from appupgen.models.instructions import Step, UpdateSupervisor, supervisor_call
from appupgen.models.supervision import SupervisorDiff

logger = logging.getLogger(__name__)


class SupervisorSpecUnavailable(LookupError):
    """The child specification of a supervisor could not be determined."""


class RuntimeInvocationError(RuntimeError):
    """An initializer call through a runtime failed."""


# ---------------------------------------------------------------------------
# Static folding of the init/1 argument
# ---------------------------------------------------------------------------


def init_argument_form(forms: list[Any]) -> Any:
    """Return the argument pattern of the single-clause ``init/1``."""
    candidates = [
        form for form in forms
        if isinstance(form, tuple)
        and len(form) == 5
        and is_atom(form[0], "function")
        and is_atom(form[2], "init")
        and form[3] == 1
    ]
    if len(candidates) != 1:
        raise SupervisorSpecUnavailable("no init/1 definition")
    clauses = candidates[0][4]
    if len(clauses) != 1:
        raise SupervisorSpecUnavailable(
            f"init/1 has {len(clauses)} clauses, only single-clause init/1 is supported"
        )
    clause = clauses[0]
    if not (isinstance(clause, tuple) and is_atom(clause[0], "clause") and len(clause[2]) == 1):
        raise SupervisorSpecUnavailable("malformed init/1 clause")
    return clause[2][0]


def fold_pattern(form: Any) -> Any:
    """Fold an abstract pattern into a value.

    Numbers, strings and atoms fold to themselves, cons cells and tuples
    fold element-wise, anything else (variables, calls, matches) folds to
    ``undefined``.
    """
    if not (isinstance(form, tuple) and form and isinstance(form[0], Atom)):
        return UNDEFINED
    kind = str(form[0])
    if kind == "nil":
        return []
    if kind in ("integer", "float", "char", "string", "atom") and len(form) == 3:
        value = form[2]
        if kind == "atom":
            return Atom(value)
        if kind == "string" and value == []:
            return ""
        return value
    if kind == "cons" and len(form) == 4:
        head = fold_pattern(form[2])
        tail = fold_pattern(form[3])
        if isinstance(tail, ImproperList):
            return ImproperList([head, *tail], tail.tail)
        if isinstance(tail, list):
            return [head, *tail]
        if isinstance(tail, str) and not isinstance(tail, Atom):
            return [head, *(ord(ch) for ch in tail)]
        return ImproperList([head], tail)
    if kind == "tuple" and len(form) == 3:
        return tuple(fold_pattern(element) for element in form[2])
    return UNDEFINED


def guess_init_argument(artifact: str | Path) -> Any:
    """Read *artifact*'s abstract code and fold its ``init/1`` argument."""
    try:
        forms = read_abstract_code(artifact)
    except (AbstractCodeUnavailable, TermDecodeError) as exc:
        raise SupervisorSpecUnavailable(str(exc)) from exc
    arg = fold_pattern(init_argument_form(forms))
    logger.debug("supervisor init arg: %r", arg)
    return arg


# ---------------------------------------------------------------------------
# Runtime capability
# ---------------------------------------------------------------------------


@runtime_checkable
class SupervisorRuntime(Protocol):
    """Capability for loading a module and running its ``init/1``."""

    def load_transient(self, module: str, artifact: Path) -> None:
        ...

    def invoke_init(self, module: str, arg: Any) -> Any:
        """Return whatever ``Module:init(Arg)`` returns."""
        ...

    def unload(self, module: str, artifact: Path) -> None:
        ...


@contextmanager
def transient_module(runtime: SupervisorRuntime, module: str, artifact: Path) -> Iterator[None]:
    """Keep *module* loaded for the body only; unload on every exit path."""
    runtime.load_transient(module, artifact)
    try:
        yield
    finally:
        runtime.unload(module, artifact)


_ERL_SCRIPT = (
    "{{ok, Bin}} = file:read_file({path}), "
    "{{module, _}} = code:load_binary({module}, {path}, Bin), "
    "Arg = binary_to_term(base64:decode({arg})), "
    "R = (catch {module}:init(Arg)), "
    "code:purge({module}), code:delete({module}), code:purge({module}), "
    "io:put_chars(base64:encode(term_to_binary(R))), "
    "halt(0)."
)


class ErlangNodeRuntime:
    """Runs ``init/1`` in a short-lived ``erl`` process.

    The artifact registered by ``load_transient`` is loaded into the node
    with ``code:load_binary/3``, the folded argument travels as base64
    encoded external term format and the result comes back the same way.
    The node purges the module before halting.

    Parameters
    ----------
    executable:
        The ``erl`` binary to run.
    timeout:
        Seconds to wait for the node before giving up.
    code_paths:
        Extra ``-pa`` directories, added after the directory of the
        artifact itself, for helpers that live in dependencies.
    """

    def __init__(
        self,
        executable: str = "erl",
        *,
        timeout: float = 30.0,
        code_paths: list[Path] | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.code_paths = list(code_paths or [])
        self._loaded: dict[str, Path] = {}

    def load_transient(self, module: str, artifact: Path) -> None:
        if not Path(artifact).is_file():
            raise RuntimeInvocationError(f"Artifact not found: {artifact}")
        self._loaded[module] = Path(artifact)

    def unload(self, module: str, artifact: Path) -> None:
        self._loaded.pop(module, None)

    @property
    def loaded_modules(self) -> list[str]:
        return list(self._loaded)

    def build_script(self, module: str, arg: Any) -> str:
        artifact = self._loaded[module]
        encoded_arg = base64.b64encode(etf.encode(arg)).decode("ascii")
        return _ERL_SCRIPT.format(
            path=format_term(str(artifact.resolve())),
            module=format_term(Atom(module)),
            arg=format_term(encoded_arg),
        )

    def command(self, module: str, arg: Any) -> list[str]:
        cmd = [self.executable, "-noshell", "-noinput"]
        # the artifact's own ebin first, for helpers of the same application
        paths = [self._loaded[module].resolve().parent, *self.code_paths]
        for path in dict.fromkeys(str(p) for p in paths):
            cmd += ["-pa", path]
        return cmd + ["-eval", self.build_script(module, arg)]

    def invoke_init(self, module: str, arg: Any) -> Any:
        if module not in self._loaded:
            raise RuntimeInvocationError(f"Module {module} is not loaded")
        try:
            result = subprocess.run(
                self.command(module, arg),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (subprocess.SubprocessError, OSError) as exc:
            raise RuntimeInvocationError(f"Could not run {self.executable}: {exc}") from exc
        if result.returncode != 0:
            raise RuntimeInvocationError(
                f"{self.executable} exited with {result.returncode}: {result.stderr.strip()}"
            )
        try:
            return etf.decode(base64.b64decode(result.stdout.strip()))
        except (ValueError, TermDecodeError) as exc:
            raise RuntimeInvocationError(f"Unreadable init/1 result: {exc}") from exc


# ---------------------------------------------------------------------------
# Child specification handling
# ---------------------------------------------------------------------------


def supervisor_children(
    module: str, artifact: Path, runtime: SupervisorRuntime
) -> list[Any]:
    """Return the child list declared by ``Module:init/1``.

    Raises ``SupervisorSpecUnavailable`` if the argument cannot be guessed,
    the call fails or the result is not ``{ok, {Flags, Children}}``.
    """
    arg = guess_init_argument(artifact)
    with transient_module(runtime, module, artifact):
        try:
            result = runtime.invoke_init(module, arg)
        except Exception as exc:
            raise SupervisorSpecUnavailable(f"{module}:init/1 failed: {exc}") from exc
    if (
        isinstance(result, tuple)
        and len(result) == 2
        and is_atom(result[0], "ok")
        and isinstance(result[1], tuple)
        and len(result[1]) == 2
        and isinstance(result[1][1], list)
    ):
        return result[1][1]
    raise SupervisorSpecUnavailable(f"{module}:init/1 returned {result!r}")


def worker_modules(children: list[Any]) -> list[str]:
    """Start modules of the worker children, in declaration order.

    Accepts both ``{Id, {M, F, A}, Restart, Shutdown, worker, Mods}`` tuples
    and child spec maps (where ``type`` defaults to ``worker``).
    """
    workers: list[str] = []
    for child in children:
        start: Any = None
        if isinstance(child, tuple) and len(child) == 6 and is_atom(child[4], "worker"):
            start = child[1]
        elif isinstance(child, dict) and is_atom(child.get("type", Atom("worker")), "worker"):
            start = child.get("start")
        if isinstance(start, tuple) and len(start) == 3 and isinstance(start[0], Atom):
            if str(start[0]) not in workers:
                workers.append(str(start[0]))
    return workers


def diff_children(old: list[Any] | None, new: list[Any] | None) -> SupervisorDiff:
    """Set difference of worker modules; unknown specs yield an empty diff."""
    if old is None or new is None:
        return SupervisorDiff(available=False)
    old_workers = worker_modules(old)
    new_workers = worker_modules(new)
    return SupervisorDiff(
        new_workers=[w for w in new_workers if w not in old_workers],
        removed_workers=[w for w in old_workers if w not in new_workers],
    )


def new_worker_steps(supervisor: str, worker: str) -> list:
    return [UpdateSupervisor(module=supervisor), supervisor_call("restart_child", supervisor, worker)]


def removed_worker_steps(supervisor: str, worker: str) -> list:
    return [
        supervisor_call("terminate_child", supervisor, worker),
        supervisor_call("delete_child", supervisor, worker),
        UpdateSupervisor(module=supervisor),
    ]


def supervisor_steps(supervisor: str, diff: SupervisorDiff) -> list[Step]:
    steps: list[Step] = [new_worker_steps(supervisor, w) for w in diff.new_workers]
    steps += [removed_worker_steps(supervisor, w) for w in diff.removed_workers]
    if not steps:
        steps = [UpdateSupervisor(module=supervisor)]
    return steps


class SupervisionTreeDiffer:
    """Replaces generic supervisor updates with child-aware instructions."""

    def __init__(self, runtime: SupervisorRuntime) -> None:
        self.runtime = runtime

    def children(self, module: str, artifact: Path) -> list[Any] | None:
        try:
            return supervisor_children(module, artifact, self.runtime)
        except SupervisorSpecUnavailable as exc:
            logger.warning(
                "could not obtain supervisor %s spec, unable to generate "
                "supervisor appup instructions: %s",
                module,
                exc,
            )
            return None

    def diff(self, module: str, old_artifact: Path, new_artifact: Path) -> SupervisorDiff:
        old = self.children(module, old_artifact)
        new = self.children(module, new_artifact)
        logger.debug("old supervisor spec: %r", old)
        logger.debug("new supervisor spec: %r", new)
        result = diff_children(old, new)
        logger.debug("supervisor workers added: %s", result.new_workers)
        logger.debug("supervisor workers removed: %s", result.removed_workers)
        return result

    def expand(self, steps: list[Step], diff: DirectoryDiff) -> list[Step]:
        """Substitute every ``UpdateSupervisor`` step with its child diff."""
        expanded: list[Step] = []
        for step in steps:
            if isinstance(step, UpdateSupervisor):
                result = self.diff(step.module, diff.old_path(step.module), diff.new_path(step.module))
                expanded.extend(supervisor_steps(step.module, result))
            else:
                expanded.append(step)
        return expanded
