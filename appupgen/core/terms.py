"""Python representations of Erlang terms.

Mapping used by both codecs (binary ETF and text):

- atom            -> ``Atom`` (a ``str`` subclass)
- string / charlist -> ``str``
- integer / float -> ``int`` / ``float``
- tuple           -> ``tuple``
- proper list     -> ``list``
- improper list   -> ``ImproperList``
- binary          -> ``bytes``
- map             -> ``dict``
- pid, port, reference, fun -> ``OpaqueTerm`` (carried byte-for-byte)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class Atom(str):
    """An Erlang atom. Compares equal to the plain string of the same text."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Atom({str.__repr__(self)})"


class ImproperList(list):
    """A list whose last cons cell does not end in ``[]``."""

    def __init__(self, items: Any = (), tail: Any = None) -> None:
        super().__init__(items)
        self.tail = tail

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImproperList):
            return False if isinstance(other, list) else NotImplemented
        return list.__eq__(self, other) and self.tail == other.tail

    def __repr__(self) -> str:
        return f"ImproperList({list.__repr__(self)}, tail={self.tail!r})"


class OpaqueTerm(BaseModel):
    """A term with no Python counterpart, kept as its raw ETF encoding."""

    model_config = ConfigDict(frozen=True)

    tag: int
    data: bytes


UNDEFINED = Atom("undefined")


def is_atom(term: Any, name: str | None = None) -> bool:
    if not isinstance(term, Atom):
        return False
    return name is None or term == name
