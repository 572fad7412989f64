"""Tests for module metadata decoding."""

from __future__ import annotations

import pytest

from appupgen.core import etf
from appupgen.core.beam import (
    AbstractCodeUnavailable,
    decode_attributes,
    read_abstract_code,
    read_module_info,
)
from appupgen.core.container import MissingChunkError
from appupgen.core.terms import Atom
from conftest import atom_table, init_forms, pack_chunk, wrap_container


class TestReadModuleInfo:
    def test_exports_and_imports(self, make_container):
        info = read_module_info(
            make_container(
                "relapp_srv",
                exports=[("start_link", 0), ("code_change", 3)],
                imports=[("gen_server", "call", 2), ("relapp_db", "get", 1)],
            )
        )
        assert info.name == "relapp_srv"
        assert info.exports == [("start_link", 0), ("code_change", 3)]
        assert ("relapp_db", "get", 1) in info.imports
        assert info.imported_modules == {"gen_server", "relapp_db"}
        assert info.exports_function("code_change")
        assert not info.exports_function("init")

    def test_behaviours_from_both_spellings(self, make_container):
        info = read_module_info(
            make_container("m", attributes={"behaviour": ["application"], "behavior": ["supervisor"]})
        )
        assert info.declared_behaviours == ["application", "supervisor"]

    def test_no_attributes(self, make_container):
        assert read_module_info(make_container("m")).attributes == {}

    def test_missing_export_table(self):
        data = wrap_container(pack_chunk("AtU8", atom_table(["m"])))
        with pytest.raises(MissingChunkError):
            read_module_info(data)


def test_repeated_attributes_are_merged():
    chunk = etf.encode(
        [
            (Atom("vsn"), [1]),
            (Atom("behaviour"), [Atom("gen_server")]),
            (Atom("behaviour"), [Atom("custom")]),
        ]
    )
    assert decode_attributes(chunk)["behaviour"] == [Atom("gen_server"), Atom("custom")]


class TestReadAbstractCode:
    def test_dbgi(self, make_container):
        forms = init_forms("m", (Atom("var"), 5, Atom("_")))
        assert read_abstract_code(make_container("m", forms=forms)) == forms

    def test_legacy_abst(self, make_container):
        forms = init_forms("m", (Atom("nil"), 5))
        abst = etf.encode((Atom("raw_abstract_v1"), forms))
        assert read_abstract_code(make_container("m", extra={"Abst": abst})) == forms

    def test_missing(self, make_container):
        with pytest.raises(AbstractCodeUnavailable, match="no abstract code"):
            read_abstract_code(make_container("m"))

    def test_other_backend(self, make_container):
        dbgi = etf.encode((Atom("debug_info_v1"), Atom("elixir_erl"), (Atom("elixir_v1"), {}, [])))
        with pytest.raises(AbstractCodeUnavailable, match="backend"):
            read_abstract_code(make_container("m", extra={"Dbgi": dbgi}))
