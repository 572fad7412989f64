"""Erlang External Term Format (version 131) codec.

Compiled modules store their attributes and abstract code as
``term_to_binary/1`` output, and the Erlang node runtime exchanges
initializer arguments and results in the same encoding.

Decoding covers every tag ``term_to_binary/1`` emits for data terms.
Pids, ports, references and funs are not interpreted; they are returned
as ``OpaqueTerm`` so they can be re-encoded unchanged.
"""

from __future__ import annotations

import struct
import zlib
from typing import Any

from appupgen.core.terms import Atom, ImproperList, OpaqueTerm

VERSION = 131

NEW_FLOAT_EXT = 70
BIT_BINARY_EXT = 77
COMPRESSED = 80
ATOM_CACHE_REF = 82
NEW_PID_EXT = 88
NEW_PORT_EXT = 89
NEWER_REFERENCE_EXT = 90
SMALL_INTEGER_EXT = 97
INTEGER_EXT = 98
FLOAT_EXT = 99
ATOM_EXT = 100
REFERENCE_EXT = 101
PORT_EXT = 102
PID_EXT = 103
SMALL_TUPLE_EXT = 104
LARGE_TUPLE_EXT = 105
NIL_EXT = 106
STRING_EXT = 107
LIST_EXT = 108
BINARY_EXT = 109
SMALL_BIG_EXT = 110
LARGE_BIG_EXT = 111
NEW_FUN_EXT = 112
EXPORT_EXT = 113
NEW_REFERENCE_EXT = 114
SMALL_ATOM_EXT = 115
MAP_EXT = 116
ATOM_UTF8_EXT = 118
SMALL_ATOM_UTF8_EXT = 119
V4_PORT_EXT = 120


class TermDecodeError(ValueError):
    """Raised when a byte string is not a valid external term."""


class TermEncodeError(TypeError):
    """Raised when a Python value has no external term encoding."""


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise TermDecodeError(
                f"Unexpected end of term at offset {self._pos} "
                f"(needed {size} bytes, {self.remaining} left)"
            )
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.take(4))[0]

    def i32(self) -> int:
        return struct.unpack(">i", self.take(4))[0]

    def term(self) -> Any:
        tag = self.u8()
        if tag == SMALL_INTEGER_EXT:
            return self.u8()
        if tag == INTEGER_EXT:
            return self.i32()
        if tag == NEW_FLOAT_EXT:
            return struct.unpack(">d", self.take(8))[0]
        if tag == FLOAT_EXT:
            text = self.take(31).split(b"\x00", 1)[0]
            return float(text.decode("ascii"))
        if tag in (ATOM_EXT, ATOM_UTF8_EXT):
            return self._atom(self.u16(), tag)
        if tag in (SMALL_ATOM_EXT, SMALL_ATOM_UTF8_EXT):
            return self._atom(self.u8(), tag)
        if tag == SMALL_TUPLE_EXT:
            return tuple(self.term() for _ in range(self.u8()))
        if tag == LARGE_TUPLE_EXT:
            return tuple(self.term() for _ in range(self.u32()))
        if tag == NIL_EXT:
            return []
        if tag == STRING_EXT:
            return self.take(self.u16()).decode("latin-1")
        if tag == LIST_EXT:
            items = [self.term() for _ in range(self.u32())]
            tail = self.term()
            if type(tail) is list and not tail:
                return items
            return ImproperList(items, tail)
        if tag == BINARY_EXT:
            return bytes(self.take(self.u32()))
        if tag == SMALL_BIG_EXT:
            return self._big(self.u8())
        if tag == LARGE_BIG_EXT:
            return self._big(self.u32())
        if tag == MAP_EXT:
            return self._map(self.u32())
        if tag in _OPAQUE_TAGS:
            start = self._pos
            _OPAQUE_TAGS[tag](self)
            return OpaqueTerm(tag=tag, data=bytes(self._data[start:self._pos]))
        if tag == COMPRESSED:
            raise TermDecodeError("Nested compressed term")
        raise TermDecodeError(f"Unsupported term tag {tag} at offset {self._pos - 1}")

    def _atom(self, length: int, tag: int) -> Atom:
        raw = self.take(length)
        encoding = "utf-8" if tag in (ATOM_UTF8_EXT, SMALL_ATOM_UTF8_EXT) else "latin-1"
        try:
            return Atom(raw.decode(encoding))
        except UnicodeDecodeError as exc:
            raise TermDecodeError(f"Invalid atom text: {exc}") from exc

    def _big(self, length: int) -> int:
        sign = self.u8()
        value = int.from_bytes(self.take(length), "little")
        return -value if sign else value

    def _map(self, arity: int) -> dict[Any, Any]:
        result: dict[Any, Any] = {}
        for _ in range(arity):
            key = self.term()
            value = self.term()
            try:
                result[key] = value
            except TypeError as exc:
                raise TermDecodeError(f"Unhashable map key: {key!r}") from exc
        return result


def _skip_pid(dec: _Decoder, creation: int) -> None:
    dec.term()
    dec.take(8 + creation)


def _skip_reference(dec: _Decoder, creation: int) -> None:
    words = dec.u16()
    dec.term()
    dec.take(creation + 4 * words)


def _skip_new_fun(dec: _Decoder) -> None:
    # Size field counts itself.
    size = dec.u32()
    dec.take(size - 4)


def _skip_export(dec: _Decoder) -> None:
    dec.term()
    dec.term()
    dec.term()


def _skip_bit_binary(dec: _Decoder) -> None:
    length = dec.u32()
    dec.take(1 + length)


_OPAQUE_TAGS = {
    NEW_PID_EXT: lambda d: _skip_pid(d, 4),
    PID_EXT: lambda d: _skip_pid(d, 1),
    NEW_PORT_EXT: lambda d: (d.term(), d.take(8)),
    PORT_EXT: lambda d: (d.term(), d.take(5)),
    V4_PORT_EXT: lambda d: (d.term(), d.take(12)),
    REFERENCE_EXT: lambda d: (d.term(), d.take(5)),
    NEW_REFERENCE_EXT: lambda d: _skip_reference(d, 1),
    NEWER_REFERENCE_EXT: lambda d: _skip_reference(d, 4),
    NEW_FUN_EXT: _skip_new_fun,
    EXPORT_EXT: _skip_export,
    BIT_BINARY_EXT: _skip_bit_binary,
}


def decode(data: bytes) -> Any:
    """Decode one ``term_to_binary/1`` encoded term.

    Trailing bytes after the term are an error.
    """
    if not data:
        raise TermDecodeError("Empty input")
    if data[0] != VERSION:
        raise TermDecodeError(f"Bad version byte {data[0]} (expected {VERSION})")
    body = bytes(data[1:])
    if body[:1] == bytes([COMPRESSED]):
        if len(body) < 5:
            raise TermDecodeError("Truncated compressed term header")
        expected = struct.unpack(">I", body[1:5])[0]
        try:
            body = zlib.decompress(body[5:])
        except zlib.error as exc:
            raise TermDecodeError(f"Corrupt compressed term: {exc}") from exc
        if len(body) != expected:
            raise TermDecodeError(
                f"Compressed term size mismatch: header says {expected}, got {len(body)}"
            )
    decoder = _Decoder(body)
    term = decoder.term()
    if decoder.remaining:
        raise TermDecodeError(f"{decoder.remaining} trailing bytes after term")
    return term


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _encode_atom(buf: bytearray, name: str) -> None:
    raw = name.encode("utf-8")
    if len(raw) < 256:
        buf += struct.pack(">BB", SMALL_ATOM_UTF8_EXT, len(raw))
    else:
        buf += struct.pack(">BH", ATOM_UTF8_EXT, len(raw))
    buf += raw


def _encode_int(buf: bytearray, value: int) -> None:
    if 0 <= value < 256:
        buf += struct.pack(">BB", SMALL_INTEGER_EXT, value)
    elif -(2**31) <= value < 2**31:
        buf += struct.pack(">Bi", INTEGER_EXT, value)
    else:
        magnitude = abs(value)
        digits = magnitude.to_bytes((magnitude.bit_length() + 7) // 8, "little")
        sign = 1 if value < 0 else 0
        if len(digits) < 256:
            buf += struct.pack(">BBB", SMALL_BIG_EXT, len(digits), sign)
        else:
            buf += struct.pack(">BIB", LARGE_BIG_EXT, len(digits), sign)
        buf += digits


def _encode_into(buf: bytearray, term: Any) -> None:
    if isinstance(term, Atom):
        _encode_atom(buf, term)
    elif term is None:
        _encode_atom(buf, "undefined")
    elif isinstance(term, bool):
        _encode_atom(buf, "true" if term else "false")
    elif isinstance(term, int):
        _encode_int(buf, term)
    elif isinstance(term, float):
        buf += struct.pack(">Bd", NEW_FLOAT_EXT, term)
    elif isinstance(term, str):
        if len(term) < 65536 and all(ord(ch) < 256 for ch in term):
            if not term:
                buf.append(NIL_EXT)
            else:
                buf += struct.pack(">BH", STRING_EXT, len(term))
                buf += term.encode("latin-1")
        else:
            _encode_into(buf, [ord(ch) for ch in term])
    elif isinstance(term, (bytes, bytearray)):
        buf += struct.pack(">BI", BINARY_EXT, len(term))
        buf += term
    elif isinstance(term, tuple):
        if len(term) < 256:
            buf += struct.pack(">BB", SMALL_TUPLE_EXT, len(term))
        else:
            buf += struct.pack(">BI", LARGE_TUPLE_EXT, len(term))
        for element in term:
            _encode_into(buf, element)
    elif isinstance(term, ImproperList):
        buf += struct.pack(">BI", LIST_EXT, len(term))
        for element in term:
            _encode_into(buf, element)
        _encode_into(buf, term.tail)
    elif isinstance(term, list):
        if term:
            buf += struct.pack(">BI", LIST_EXT, len(term))
            for element in term:
                _encode_into(buf, element)
        buf.append(NIL_EXT)
    elif isinstance(term, dict):
        buf += struct.pack(">BI", MAP_EXT, len(term))
        for key, value in term.items():
            _encode_into(buf, key)
            _encode_into(buf, value)
    elif isinstance(term, OpaqueTerm):
        buf.append(term.tag)
        buf += term.data
    else:
        raise TermEncodeError(f"Cannot encode {type(term).__name__} as an Erlang term")


def encode(term: Any, *, compressed: bool = False) -> bytes:
    """Encode a term the way ``term_to_binary/1,2`` does."""
    body = bytearray()
    _encode_into(body, term)
    if compressed:
        packed = zlib.compress(bytes(body))
        return bytes([VERSION, COMPRESSED]) + struct.pack(">I", len(body)) + packed
    return bytes([VERSION]) + bytes(body)
