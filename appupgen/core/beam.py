"""Decoding of the module metadata chunks the generator relies on.

- ``Atom`` / ``AtU8``: atom table (module name, function and module names)
- ``ExpT``: exported functions ``(name, arity)``
- ``ImpT``: imported functions ``(module, name, arity)``
- ``Attr``: module attributes, an external-term list of ``{Key, Value}``
- ``Dbgi`` / ``Abst``: abstract code
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Any

from appupgen.core import etf
from appupgen.core.container import (
    ATOM_CHUNKS,
    MalformedChunkError,
    decode_atom_table,
    read_chunks,
)
from appupgen.core.terms import Atom, is_atom
from appupgen.models.modules import ModuleInfo


class AbstractCodeUnavailable(LookupError):
    """The artifact carries no usable abstract code."""


def _triples(source: str, tag: str, chunk: bytes | None) -> list[tuple[int, int, int]]:
    if not chunk:
        return []
    if len(chunk) < 4:
        raise MalformedChunkError(source, tag, "shorter than its count field")
    count = struct.unpack(">I", chunk[:4])[0]
    if len(chunk) < 4 + 12 * count:
        raise MalformedChunkError(
            source, tag, f"declares {count} entries but holds {(len(chunk) - 4) // 12}"
        )
    return [struct.unpack(">III", chunk[4 + 12 * i: 16 + 12 * i]) for i in range(count)]


def _atom_table(source: str, contents: dict[str, bytes | None]) -> list[str]:
    for tag, encoding in ATOM_CHUNKS.items():
        chunk = contents.get(tag)
        if chunk is not None:
            try:
                return decode_atom_table(chunk, encoding)
            except ValueError as exc:
                raise MalformedChunkError(source, tag, str(exc)) from exc
    return []


def decode_attributes(chunk: bytes | None) -> dict[str, list[Any]]:
    """Group the ``Attr`` chunk by key, concatenating repeated attributes.

    ``-behaviour(a). -behaviour(b).`` yields ``{"behaviour": [a, b]}``.
    """
    if not chunk:
        return {}
    attributes: dict[str, list[Any]] = {}
    for entry in etf.decode(chunk):
        if not (isinstance(entry, tuple) and len(entry) == 2 and isinstance(entry[0], Atom)):
            continue
        key, value = entry
        values = value if isinstance(value, list) else [value]
        attributes.setdefault(str(key), []).extend(values)
    return attributes


def read_module_info(source: bytes | str | Path) -> ModuleInfo:
    """Read the name, attributes, exports and imports of one artifact."""
    contents = read_chunks(
        source,
        ["AtU8", "Atom", "ExpT", "ImpT", "Attr"],
        optional=["AtU8", "Atom", "ImpT", "Attr"],
    )
    name = contents.source
    atoms = _atom_table(name, contents.chunks)

    def atom_at(tag: str, index: int) -> str:
        # atom indices are 1-based
        if not 1 <= index <= len(atoms):
            raise MalformedChunkError(
                name, tag, f"atom index {index} outside a table of {len(atoms)}"
            )
        return atoms[index - 1]

    exports = [
        (atom_at("ExpT", fn), arity)
        for fn, arity, _label in _triples(name, "ExpT", contents.chunks["ExpT"])
    ]
    imports = [
        (atom_at("ImpT", mod), atom_at("ImpT", fn), arity)
        for mod, fn, arity in _triples(name, "ImpT", contents.chunks["ImpT"])
    ]
    return ModuleInfo(
        name=contents.module,
        attributes=decode_attributes(contents.chunks["Attr"]),
        exports=exports,
        imports=imports,
    )


def read_abstract_code(source: bytes | str | Path) -> list[Any]:
    """Return the module's abstract forms.

    Supports ``Dbgi`` chunks written by the Erlang compiler backend and
    legacy ``Abst`` chunks. Raises ``AbstractCodeUnavailable`` when the
    module was compiled without debug info or by another backend.
    """
    contents = read_chunks(source, ["Dbgi", "Abst"], optional=["Dbgi", "Abst"])
    dbgi = contents.chunks["Dbgi"]
    if dbgi:
        term = etf.decode(dbgi)
        if (
            isinstance(term, tuple)
            and len(term) == 3
            and is_atom(term[0], "debug_info_v1")
            and is_atom(term[1], "erl_abstract_code")
        ):
            metadata = term[2]
            if isinstance(metadata, tuple) and isinstance(metadata[0], list):
                return metadata[0]
        raise AbstractCodeUnavailable(f"{contents.source}: unsupported debug info backend")
    abst = contents.chunks["Abst"]
    if abst:
        term = etf.decode(abst)
        if isinstance(term, tuple) and len(term) == 2 and is_atom(term[0], "raw_abstract_v1"):
            return term[1]
        raise AbstractCodeUnavailable(f"{contents.source}: unsupported abstract code format")
    raise AbstractCodeUnavailable(f"{contents.source}: no abstract code")
