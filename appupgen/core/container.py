"""Chunked container reader for compiled module artifacts.

Layout of a container::

    "FOR1" <size:32/big> "BEAM"
    { <tag:4 bytes> <length:32/big> <payload:length> <pad to 4> }*

Two read modes are supported:

- **index**: every chunk is recorded as ``(tag, offset, size)`` without
  copying its payload. Used to learn the chunk set and the module name
  cheaply.
- **chunks**: only the requested tags are materialized; the scan stops
  as soon as every requested tag (and the module name) has been seen.

The module name is always the first entry of the atom table, which is
stored in either the ``Atom`` chunk (latin-1) or the ``AtU8`` chunk
(UTF-8). Inputs that do not start with the container magic are passed
through a gzip decompression step first.
"""

from __future__ import annotations

import gzip
import logging
import struct
import zlib
from collections.abc import Iterable
from pathlib import Path

from appupgen.models.artifacts import ChunkIndexEntry, ContainerContents, ContainerIndex

logger = logging.getLogger(__name__)

MAGIC = b"FOR1"
FORM_TYPE = b"BEAM"
HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

ATOM_CHUNKS: dict[str, str] = {"Atom": "latin-1", "AtU8": "utf-8"}

INDEX = "index"

_GZIP_MAGIC = b"\x1f\x8b"


class ContainerError(RuntimeError):
    """Base class for every failure while reading a container."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"{source}: {message}")


class NotAContainerError(ContainerError):
    """The input does not start with the container framing header."""

    def __init__(self, source: str) -> None:
        super().__init__(source, "not a compiled module container")


class InvalidChunkHeaderError(ContainerError):
    """A chunk header is cut short or otherwise malformed."""

    def __init__(self, source: str, offset: int) -> None:
        self.offset = offset
        super().__init__(source, f"invalid chunk header at offset {offset}")


class ContainerSizeError(ContainerError):
    """The size declared in the framing header disagrees with the data."""

    def __init__(self, source: str, declared: int, actual: int) -> None:
        self.declared = declared
        self.actual = actual
        super().__init__(
            source, f"declared container size {declared} but {actual} bytes follow"
        )


class MissingChunkError(ContainerError):
    """A required chunk was not found before the end of the container."""

    def __init__(self, source: str, tag: str) -> None:
        self.tag = tag
        super().__init__(source, f"missing chunk {tag!r}")


class ChunkTooBigError(ContainerError):
    """A chunk declares more payload than the container holds."""

    def __init__(self, source: str, tag: str, declared: int, available: int) -> None:
        self.tag = tag
        self.declared = declared
        self.available = available
        super().__init__(
            source,
            f"chunk {tag!r} declares {declared} bytes but only {available} are available",
        )


class MalformedChunkError(ContainerError):
    """A correctly framed chunk whose payload cannot be decoded."""

    def __init__(self, source: str, tag: str, reason: str) -> None:
        self.tag = tag
        self.reason = reason
        super().__init__(source, f"malformed chunk {tag!r}: {reason}")


class ContainerFileError(ContainerError):
    """The artifact file could not be read."""

    def __init__(self, source: str, reason: str) -> None:
        self.reason = reason
        super().__init__(source, f"file error: {reason}")


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------


def _load(source: bytes | str | Path) -> tuple[bytes, str]:
    """Return the raw container bytes and a printable source name."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        data, name = bytes(source), "<bytes>"
    else:
        name = str(source)
        try:
            data = Path(source).read_bytes()
        except OSError as exc:
            raise ContainerFileError(name, exc.strerror or str(exc)) from exc
    if data[:4] != MAGIC and data[:2] == _GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            raise ContainerFileError(name, f"decompression failed: {exc}") from exc
        logger.debug("Decompressed %s to %d bytes", name, len(data))
    return data, name


def _check_header(data: bytes, name: str) -> int:
    if len(data) < HEADER_SIZE or data[:4] != MAGIC or data[8:12] != FORM_TYPE:
        raise NotAContainerError(name)
    return struct.unpack(">I", data[4:8])[0]


def _padded(size: int) -> int:
    return (size + 3) & ~3


def _chunks(data: bytes, name: str):
    """Yield ``(tag, payload_offset, size, next_offset)`` for every chunk header."""
    pos = HEADER_SIZE
    while pos < len(data):
        if len(data) - pos < CHUNK_HEADER_SIZE:
            raise InvalidChunkHeaderError(name, pos)
        raw_tag = data[pos:pos + 4]
        try:
            tag = raw_tag.decode("ascii")
        except UnicodeDecodeError as exc:
            raise InvalidChunkHeaderError(name, pos) from exc
        size = struct.unpack(">I", data[pos + 4:pos + 8])[0]
        start = pos + CHUNK_HEADER_SIZE
        yield tag, start, size, start + _padded(size)
        pos = start + _padded(size)


def _payload(data: bytes, name: str, tag: str, start: int, size: int) -> bytes:
    available = max(len(data) - start, 0)
    if size > available:
        raise ChunkTooBigError(name, tag, size, available)
    return data[start:start + size]


# ---------------------------------------------------------------------------
# Atom table
# ---------------------------------------------------------------------------


def _compact_length(chunk: bytes, pos: int) -> tuple[int, int]:
    """Decode one compact-term encoded length (used by newer atom tables)."""
    first = chunk[pos]
    if first & 0x08 == 0:
        return first >> 4, pos + 1
    if first & 0x10 == 0:
        return ((first & 0xE0) << 3) | chunk[pos + 1], pos + 2
    count = (first >> 5) + 2
    return int.from_bytes(chunk[pos + 1:pos + 1 + count], "big"), pos + 1 + count


def decode_atom_table(chunk: bytes, encoding: str, *, limit: int | None = None) -> list[str]:
    """Decode an atom table chunk into its list of atom names.

    A negative atom count marks the compact length encoding; otherwise
    every atom is prefixed by a one byte length.
    """
    if len(chunk) < 4:
        raise ValueError("atom table shorter than its count field")
    count = struct.unpack(">i", chunk[:4])[0]
    compact = count < 0
    count = abs(count)
    if limit is not None:
        count = min(count, limit)
    atoms: list[str] = []
    pos = 4
    for _ in range(count):
        if compact:
            length, pos = _compact_length(chunk, pos)
        else:
            length, pos = chunk[pos], pos + 1
        raw = chunk[pos:pos + length]
        if len(raw) != length:
            raise ValueError("atom table entry runs past the end of the chunk")
        atoms.append(raw.decode(encoding))
        pos += length
    return atoms


def _module_name(data: bytes, name: str, tag: str, start: int, size: int) -> str:
    chunk = _payload(data, name, tag, start, size)
    try:
        atoms = decode_atom_table(chunk, ATOM_CHUNKS[tag], limit=1)
    except (ValueError, IndexError, UnicodeDecodeError) as exc:
        raise InvalidChunkHeaderError(name, start - CHUNK_HEADER_SIZE) from exc
    if not atoms:
        raise MissingChunkError(name, tag)
    return atoms[0]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def read_index(source: bytes | str | Path) -> ContainerIndex:
    """Record every chunk of a container without copying payloads.

    The whole container is walked, every chunk must fit inside the data,
    and the size in the framing header must match what follows it.
    """
    data, name = _load(source)
    declared = _check_header(data, name)
    module: str | None = None
    entries: list[ChunkIndexEntry] = []
    for tag, start, size, _next in _chunks(data, name):
        if size > len(data) - start:
            raise ChunkTooBigError(name, tag, size, max(len(data) - start, 0))
        if tag in ATOM_CHUNKS and module is None:
            module = _module_name(data, name, tag, start, size)
        entries.append(ChunkIndexEntry(tag=tag, offset=start, size=size))
    if module is None:
        raise MissingChunkError(name, "Atom")
    if declared != len(data) - 8:
        raise ContainerSizeError(name, declared, len(data) - 8)
    return ContainerIndex(module=module, source=name, entries=entries)


def read_chunks(
    source: bytes | str | Path,
    tags: Iterable[str],
    *,
    optional: Iterable[str] = (),
) -> ContainerContents:
    """Materialize the payloads of the requested chunk tags.

    Chunks come back in the order they appear in the container. A tag in
    *optional* that is never found maps to ``None``; any other missing
    tag raises ``MissingChunkError``.
    """
    data, name = _load(source)
    _check_header(data, name)
    wanted = list(dict.fromkeys(tags))
    optional_tags = set(optional)
    pending = set(wanted)
    module: str | None = None
    found: dict[str, bytes] = {}

    for tag, start, size, _next in _chunks(data, name):
        if tag in ATOM_CHUNKS and module is None:
            module = _module_name(data, name, tag, start, size)
        if tag in pending:
            found[tag] = _payload(data, name, tag, start, size)
            pending.discard(tag)
        if not pending and module is not None:
            break

    if module is None:
        raise MissingChunkError(name, "Atom")
    missing = [tag for tag in wanted if tag in pending and tag not in optional_tags]
    if missing:
        raise MissingChunkError(name, missing[0])

    chunks: dict[str, bytes | None] = dict(found)
    for tag in wanted:
        chunks.setdefault(tag, None)
    return ContainerContents(module=module, source=name, chunks=chunks)


def read_container(
    source: bytes | str | Path,
    what: Iterable[str] | str,
    *,
    optional: Iterable[str] = (),
) -> ContainerIndex | ContainerContents:
    """Single entry point: ``what`` is either ``INDEX`` or an iterable of tags."""
    if isinstance(what, str):
        if what != INDEX:
            raise ValueError(f"Unknown read mode {what!r}; pass {INDEX!r} or a list of tags")
        return read_index(source)
    return read_chunks(source, what, optional=optional)
