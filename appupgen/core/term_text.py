"""Erlang term text: a ``file:consult/1`` style parser and a formatter.

The parser reads a sequence of dot-terminated ground terms (no variables,
no expressions) as used by ``.appup.pre.src``/``.appup.post.src``
fragment files and ``.rel`` files. The formatter writes terms back in a
form the Erlang reader accepts.
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any

from appupgen.core.terms import Atom, ImproperList, OpaqueTerm


class TermSyntaxError(ValueError):
    """Raised for text that is not a sequence of Erlang terms."""

    def __init__(self, message: str, line: int) -> None:
        self.line = line
        super().__init__(f"line {line}: {message}")


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+|%[^\n]*)
  | (?P<float>-?\d+\.\d+(?:[eE][-+]?\d+)?)
  | (?P<based>-?\d+\#[0-9a-zA-Z]+)
  | (?P<int>-?\d+)
  | (?P<char>\$(?:\\(?:[0-7]{1,3}|x[0-9a-fA-F]{2}|x\{[0-9a-fA-F]+\}|\^[a-zA-Z]|.)|.))
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<qatom>'(?:[^'\\]|\\.)*')
  | (?P<atom>[a-z][A-Za-z0-9_@]*)
  | (?P<var>[A-Z_][A-Za-z0-9_@]*)
  | (?P<punct><<|>>|=>|\#\{|[{}\[\]|,.])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {
    "b": "\b", "d": "\x7f", "e": "\x1b", "f": "\f", "n": "\n",
    "r": "\r", "s": " ", "t": "\t", "v": "\v",
}


def _unescape(body: str, line: int) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        i += 1
        if i >= len(body):
            raise TermSyntaxError("dangling escape", line)
        esc = body[i]
        if esc in "01234567":
            match = re.match(r"[0-7]{1,3}", body[i:])
            out.append(chr(int(match.group(0), 8)))
            i += len(match.group(0))
        elif esc == "x":
            match = re.match(r"x(?:\{([0-9a-fA-F]+)\}|([0-9a-fA-F]{2}))", body[i:])
            if not match:
                raise TermSyntaxError("bad hex escape", line)
            out.append(chr(int(match.group(1) or match.group(2), 16)))
            i += len(match.group(0))
        elif esc == "^" and i + 1 < len(body):
            out.append(chr(ord(body[i + 1]) % 32))
            i += 2
        else:
            out.append(_ESCAPES.get(esc, esc))
            i += 1
    return "".join(out)


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens: list[tuple[str, str, int]] = []
        line = 1
        pos = 0
        while pos < len(text):
            match = _TOKEN_RE.match(text, pos)
            if not match:
                raise TermSyntaxError(f"unexpected character {text[pos]!r}", line)
            kind = match.lastgroup
            value = match.group(0)
            if kind == "punct" and value == "." and not self._is_end(text, match.end()):
                raise TermSyntaxError("unexpected '.'", line)
            if kind != "ws":
                self._tokens.append((kind, value, line))
            line += value.count("\n")
            pos = match.end()
        self._pos = 0

    @staticmethod
    def _is_end(text: str, pos: int) -> bool:
        return pos >= len(text) or text[pos].isspace() or text[pos] == "%"

    def _peek(self) -> tuple[str, str, int] | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> tuple[str, str, int]:
        token = self._peek()
        if token is None:
            last = self._tokens[-1][2] if self._tokens else 1
            raise TermSyntaxError("unexpected end of input", last)
        self._pos += 1
        return token

    def _expect(self, value: str) -> None:
        kind, got, line = self._next()
        if got != value or kind != "punct":
            raise TermSyntaxError(f"expected {value!r}, got {got!r}", line)

    def _accept(self, value: str) -> bool:
        token = self._peek()
        if token and token[0] == "punct" and token[1] == value:
            self._pos += 1
            return True
        return False

    def terms(self) -> list[Any]:
        result = []
        while self._peek() is not None:
            result.append(self.term())
            self._expect(".")
        return result

    def term(self) -> Any:
        kind, value, line = self._next()
        if kind == "int":
            return int(value)
        if kind == "based":
            base, digits = value.lstrip("-").split("#")
            number = int(digits, int(base))
            return -number if value.startswith("-") else number
        if kind == "float":
            return float(value)
        if kind == "char":
            return ord(_unescape(value[1:], line))
        if kind == "string":
            parts = [_unescape(value[1:-1], line)]
            while self._peek() and self._peek()[0] == "string":
                parts.append(_unescape(self._next()[1][1:-1], line))
            return "".join(parts)
        if kind == "qatom":
            return Atom(_unescape(value[1:-1], line))
        if kind == "atom":
            return Atom(value)
        if kind == "var":
            raise TermSyntaxError(f"variables are not allowed ({value})", line)
        if value == "{":
            return tuple(self._sequence("}"))
        if value == "[":
            return self._list()
        if value == "<<":
            return self._binary(line)
        if value == "#{":
            return self._map()
        raise TermSyntaxError(f"unexpected {value!r}", line)

    def _sequence(self, close: str) -> list[Any]:
        items: list[Any] = []
        if self._accept(close):
            return items
        items.append(self.term())
        while self._accept(","):
            items.append(self.term())
        self._expect(close)
        return items

    def _list(self) -> Any:
        items: list[Any] = []
        if self._accept("]"):
            return items
        items.append(self.term())
        while self._accept(","):
            items.append(self.term())
        if self._accept("|"):
            tail = self.term()
            self._expect("]")
            if isinstance(tail, list) and not isinstance(tail, ImproperList):
                return items + tail
            if isinstance(tail, ImproperList):
                return ImproperList(items + list(tail), tail.tail)
            return ImproperList(items, tail)
        self._expect("]")
        return items

    def _binary(self, line: int) -> bytes:
        out = bytearray()
        if self._accept(">>"):
            return bytes(out)
        while True:
            segment = self.term()
            if isinstance(segment, int) and 0 <= segment < 256:
                out.append(segment)
            elif isinstance(segment, str) and not isinstance(segment, Atom):
                out += segment.encode("latin-1")
            else:
                raise TermSyntaxError("unsupported binary segment", line)
            if self._accept(">>"):
                return bytes(out)
            self._expect(",")

    def _map(self) -> dict[Any, Any]:
        result: dict[Any, Any] = {}
        if self._accept("}"):
            return result
        while True:
            key = self.term()
            self._expect("=>")
            result[key] = self.term()
            if self._accept("}"):
                return result
            self._expect(",")


def parse_terms(text: str) -> list[Any]:
    """Parse every dot-terminated term in *text*."""
    return _Parser(text).terms()


def consult(path: str | Path) -> list[Any]:
    """Read a file of Erlang terms, like ``file:consult/1``."""
    return parse_terms(Path(path).read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_RESERVED = frozenset(
    "after and andalso band begin bnot bor bsl bsr bxor case catch cond div "
    "else end fun if let maybe not of or orelse receive rem try when xor".split()
)
_BARE_ATOM = re.compile(r"[a-z][A-Za-z0-9_@]*\Z")
_REVERSE_ESCAPES = {"\n": "\\n", "\t": "\\t", "\r": "\\r", "\\": "\\\\"}


def _quote(text: str, quote: str) -> str:
    out = []
    for ch in text:
        if ch == quote:
            out.append("\\" + ch)
        elif ch in _REVERSE_ESCAPES:
            out.append(_REVERSE_ESCAPES[ch])
        elif ord(ch) < 32:
            out.append(f"\\x{{{ord(ch):X}}}")
        else:
            out.append(ch)
    return quote + "".join(out) + quote


def format_atom(name: str) -> str:
    if _BARE_ATOM.match(name) and name not in _RESERVED:
        return name
    return _quote(name, "'")


def format_float(value: float) -> str:
    """Erlang float text: a digit must sit on both sides of the point."""
    if not math.isfinite(value):
        raise ValueError(f"{value!r} has no Erlang text form")
    text = repr(value)
    mantissa, sep, exponent = text.partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    return mantissa + sep + exponent


def format_term(term: Any) -> str:
    """Single-line Erlang text for *term*."""
    if isinstance(term, Atom):
        return format_atom(term)
    if isinstance(term, bool):
        return "true" if term else "false"
    if term is None:
        return "undefined"
    if isinstance(term, float):
        return format_float(term)
    if isinstance(term, int):
        return repr(term)
    if isinstance(term, str):
        return _quote(term, '"')
    if isinstance(term, (bytes, bytearray)):
        if all(32 <= b < 127 for b in term):
            return "<<" + _quote(term.decode("ascii"), '"') + ">>"
        return "<<" + ",".join(str(b) for b in term) + ">>"
    if isinstance(term, tuple):
        return "{" + ",".join(format_term(t) for t in term) + "}"
    if isinstance(term, ImproperList):
        return "[" + ",".join(format_term(t) for t in term) + "|" + format_term(term.tail) + "]"
    if isinstance(term, list):
        return "[" + ",".join(format_term(t) for t in term) + "]"
    if isinstance(term, dict):
        return "#{" + ",".join(f"{format_term(k)} => {format_term(v)}" for k, v in term.items()) + "}"
    if isinstance(term, OpaqueTerm):
        raise TypeError("Opaque terms (pids, refs, funs) have no text form")
    raise TypeError(f"Cannot format {type(term).__name__} as an Erlang term")


def format_term_list(terms: list[Any], indent: int = 0) -> str:
    """A list with one element per line, aligned under *indent* spaces."""
    if not terms:
        return "[]"
    pad = " " * (indent + 1)
    body = (",\n" + pad).join(format_term(t) for t in terms)
    return "[" + body + "]"


def format_instruction_list(instructions: list[Any], indent: int = 0) -> str:
    """Format instruction models (anything with ``to_term``) as a term list."""
    return format_term_list([instruction.to_term() for instruction in instructions], indent)
