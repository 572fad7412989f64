"""Tests for the External Term Format codec."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from appupgen.core import etf
from appupgen.core.etf import TermDecodeError, TermEncodeError
from appupgen.core.terms import Atom, ImproperList, OpaqueTerm


class TestDecodeKnownBytes:
    """Byte strings as produced by ``term_to_binary/1``."""

    def test_small_integer(self):
        assert etf.decode(bytes([131, 97, 42])) == 42

    def test_negative_integer(self):
        assert etf.decode(bytes([131, 98, 0xFF, 0xFF, 0xFF, 0xFF])) == -1

    def test_atom_utf8(self):
        term = etf.decode(bytes([131, 119, 2]) + b"ok")
        assert isinstance(term, Atom)
        assert term == "ok"

    def test_legacy_atom_ext(self):
        term = etf.decode(bytes([131, 100, 0, 3]) + b"foo")
        assert term == Atom("foo")

    def test_string_ext_is_str(self):
        term = etf.decode(bytes([131, 107, 0, 3]) + b"abc")
        assert term == "abc"
        assert not isinstance(term, Atom)

    def test_nil(self):
        assert etf.decode(bytes([131, 106])) == []

    def test_tuple(self):
        data = bytes([131, 104, 2, 119, 2]) + b"ok" + bytes([97, 1])
        assert etf.decode(data) == (Atom("ok"), 1)

    def test_binary(self):
        assert etf.decode(bytes([131, 109, 0, 0, 0, 2, 1, 2])) == b"\x01\x02"

    def test_improper_list(self):
        data = bytes([131, 108, 0, 0, 0, 1, 97, 1, 97, 2])
        term = etf.decode(data)
        assert isinstance(term, ImproperList)
        assert list(term) == [1]
        assert term.tail == 2

    def test_small_big(self):
        # 2**64
        data = bytes([131, 110, 9, 0]) + (2**64).to_bytes(9, "little")
        assert etf.decode(data) == 2**64

    def test_pid_is_opaque(self):
        node = bytes([119, 13]) + b"nonode@nohost"
        data = bytes([131, 88]) + node + bytes(12)
        term = etf.decode(data)
        assert isinstance(term, OpaqueTerm)
        assert term.tag == 88
        assert etf.encode(term) == data
        with pytest.raises(ValidationError):
            term.tag = 89


class TestDecodeErrors:
    def test_empty(self):
        with pytest.raises(TermDecodeError):
            etf.decode(b"")

    def test_bad_version(self):
        with pytest.raises(TermDecodeError, match="version"):
            etf.decode(bytes([130, 97, 1]))

    def test_truncated(self):
        with pytest.raises(TermDecodeError, match="end of term"):
            etf.decode(bytes([131, 104, 2, 97]))

    def test_trailing_bytes(self):
        with pytest.raises(TermDecodeError, match="trailing"):
            etf.decode(bytes([131, 97, 1, 0]))

    def test_unknown_tag(self):
        with pytest.raises(TermDecodeError, match="Unsupported"):
            etf.decode(bytes([131, 1]))


class TestEncode:
    def test_matches_term_to_binary_for_small_tuple(self):
        assert etf.encode((Atom("ok"), 1)) == bytes([131, 104, 2, 119, 2]) + b"ok" + bytes([97, 1])

    def test_empty_string_is_nil(self):
        assert etf.encode("") == bytes([131, 106])

    def test_none_and_bool_become_atoms(self):
        assert etf.decode(etf.encode(None)) == Atom("undefined")
        assert etf.decode(etf.encode(True)) == Atom("true")

    def test_unicode_string_becomes_int_list(self):
        assert etf.decode(etf.encode("λ")) == [0x3BB]

    def test_nested_structure_survives(self):
        term = {
            Atom("strategy"): Atom("one_for_one"),
            Atom("children"): [(Atom("id"), b"bin", -70000, 2**70, 1.5)],
            Atom("tail"): ImproperList([1, 2], Atom("x")),
        }
        assert etf.decode(etf.encode(term)) == term

    def test_compressed(self):
        term = [Atom("a")] * 200
        packed = etf.encode(term, compressed=True)
        assert packed[1] == etf.COMPRESSED
        assert len(packed) < len(etf.encode(term))
        assert etf.decode(packed) == term

    def test_opaque_reencodes_unchanged(self):
        node = bytes([119, 13]) + b"nonode@nohost"
        data = bytes([131, 88]) + node + bytes(range(12))
        assert etf.encode(etf.decode(data)) == data

    def test_unencodable(self):
        with pytest.raises(TermEncodeError):
            etf.encode(object())
