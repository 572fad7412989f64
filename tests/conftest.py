"""Shared test fixtures for Appupgen."""

from __future__ import annotations

import struct
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from appupgen.core import etf
from appupgen.core.terms import Atom

# ---------------------------------------------------------------------------
# Synthetic container builder
# ---------------------------------------------------------------------------


def pack_chunk(tag: str, payload: bytes) -> bytes:
    padding = b"\x00" * ((4 - len(payload) % 4) % 4)
    return tag.encode("ascii") + struct.pack(">I", len(payload)) + payload + padding


def wrap_container(body: bytes) -> bytes:
    return b"FOR1" + struct.pack(">I", len(body) + 4) + b"BEAM" + body


def atom_table(atoms: list[str]) -> bytes:
    out = struct.pack(">i", len(atoms))
    for name in atoms:
        raw = name.encode("utf-8")
        out += bytes([len(raw)]) + raw
    return out


def init_forms(module: str, arg_form: Any, clauses: int = 1) -> list[Any]:
    """Abstract forms of a module whose ``init/1`` takes *arg_form*."""
    clause = (
        Atom("clause"),
        5,
        [arg_form],
        [],
        [(Atom("atom"), 6, Atom("ok"))],
    )
    return [
        (Atom("attribute"), 1, Atom("module"), Atom(module)),
        (Atom("function"), 5, Atom("init"), 1, [clause] * clauses),
    ]


def build_container(
    module: str,
    *,
    exports: list[tuple[str, int]] = (),
    imports: list[tuple[str, str, int]] = (),
    attributes: dict[str, list[Any]] | None = None,
    code: bytes = b"\x00\x00\x00\x10code",
    cinf: bytes = b"compile-info",
    line: bytes = b"",
    forms: list[Any] | None = None,
    atom_tag: str = "AtU8",
    extra: dict[str, bytes] | None = None,
) -> bytes:
    """Build a container with a realistic chunk layout.

    Atom indices in ``ExpT``/``ImpT`` are 1-based, and the module name is
    always the first atom.
    """
    atoms: list[str] = [module]

    def index(name: str) -> int:
        if name not in atoms:
            atoms.append(name)
        return atoms.index(name) + 1

    expt = struct.pack(">I", len(exports)) + b"".join(
        struct.pack(">III", index(fn), arity, label) for label, (fn, arity) in enumerate(exports, 1)
    )
    impt = struct.pack(">I", len(imports)) + b"".join(
        struct.pack(">III", index(mod), index(fn), arity) for mod, fn, arity in imports
    )
    # plain strings in attribute values stand for atoms
    attr = etf.encode(
        [
            (Atom(k), [Atom(x) if isinstance(x, str) else x for x in v])
            for k, v in (attributes or {}).items()
        ]
    )

    body = pack_chunk(atom_tag, atom_table(atoms))
    body += pack_chunk("Code", code)
    body += pack_chunk("ExpT", expt)
    body += pack_chunk("ImpT", impt)
    body += pack_chunk("Attr", attr)
    body += pack_chunk("CInf", cinf)
    if forms is not None:
        dbgi = etf.encode(
            (Atom("debug_info_v1"), Atom("erl_abstract_code"), (forms, [])), compressed=True
        )
        body += pack_chunk("Dbgi", dbgi)
    body += pack_chunk("Line", line)
    for tag, payload in (extra or {}).items():
        body += pack_chunk(tag, payload)
    return wrap_container(body)


@pytest.fixture
def make_container() -> Callable[..., bytes]:
    """Factory fixture: container bytes for a module."""
    return build_container


@pytest.fixture
def write_module() -> Callable[..., Path]:
    """Factory fixture: write ``<dir>/<module>.beam`` and return its path."""

    def _factory(directory: Path, module: str, **kwargs: Any) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{module}.beam"
        path.write_bytes(build_container(module, **kwargs))
        return path

    return _factory


@pytest.fixture
def ebin_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Provide empty old/new ebin directories."""
    old, new = tmp_path / "old" / "ebin", tmp_path / "new" / "ebin"
    old.mkdir(parents=True)
    new.mkdir(parents=True)
    return old, new


# ---------------------------------------------------------------------------
# Supervisor runtime double
# ---------------------------------------------------------------------------


class FakeRuntime:
    """Records load/init/unload calls; init results are keyed by artifact path."""

    def __init__(self, results: dict[str, Any] | None = None, *, fail: bool = False) -> None:
        self.results = results or {}
        self.fail = fail
        self.events: list[tuple[str, str]] = []
        self._current: dict[str, Path] = {}

    def load_transient(self, module: str, artifact: Path) -> None:
        self.events.append(("load", module))
        self._current[module] = Path(artifact)

    def invoke_init(self, module: str, arg: Any) -> Any:
        self.events.append(("init", module))
        if self.fail:
            raise RuntimeError("init crashed")
        return self.results[str(self._current[module])]

    def unload(self, module: str, artifact: Path) -> None:
        self.events.append(("unload", module))
        self._current.pop(module, None)

    @property
    def loaded(self) -> list[str]:
        return list(self._current)


@pytest.fixture
def fake_runtime() -> Callable[..., FakeRuntime]:
    """Factory fixture: a ``FakeRuntime`` with the given init results."""
    return FakeRuntime


def child_spec(worker: str, kind: str = "worker") -> tuple:
    """Classic ``{Id, {M, F, A}, Restart, Shutdown, Type, Modules}`` tuple."""
    return (
        Atom(worker),
        (Atom(worker), Atom("start_link"), []),
        Atom("permanent"),
        5000,
        Atom(kind),
        [Atom(worker)],
    )


def sup_result(*children: Any) -> tuple:
    """``{ok, {Flags, Children}}`` as returned by a supervisor's ``init/1``."""
    return (Atom("ok"), ((Atom("one_for_one"), 5, 10), list(children)))
