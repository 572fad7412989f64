"""Adversarial tests: malformed external-format and text terms."""

from __future__ import annotations

import pytest

from appupgen.core import etf
from appupgen.core.etf import TermDecodeError
from appupgen.core.fragments import FragmentError, load_fragment
from appupgen.core.term_text import TermSyntaxError, parse_terms
from appupgen.core.terms import Atom

SAMPLE = (
    Atom("ok"),
    [1, 300, -70000, 2**70, 1.5],
    b"\x00binary",
    "charlist",
    {Atom("key"): (Atom("nested"), [])},
)


@pytest.mark.parametrize("compressed", [False, True])
def test_every_prefix_of_an_encoded_term_is_rejected(compressed):
    data = etf.encode(SAMPLE, compressed=compressed)
    assert etf.decode(data) == SAMPLE
    for length in range(len(data)):
        with pytest.raises(TermDecodeError):
            etf.decode(data[:length])


def test_trailing_garbage_rejected():
    with pytest.raises(TermDecodeError, match="trailing"):
        etf.decode(etf.encode(Atom("ok")) + b"\x00")


def test_compressed_size_mismatch():
    data = bytearray(etf.encode(SAMPLE, compressed=True))
    data[5] ^= 0x01
    with pytest.raises(TermDecodeError, match="size mismatch"):
        etf.decode(bytes(data))


def test_unknown_tag():
    with pytest.raises(TermDecodeError, match="Unsupported"):
        etf.decode(bytes([131, 200]))


@pytest.mark.parametrize(
    "text",
    [
        "{a, b",
        "[a, b}.",
        "{a,, b}.",
        "<<300>>.",
        "#{a => }.",
        "'unterminated.",
        '"unterminated.',
        "{a} {b}.",
        "Var.",
        "a.b.",
    ],
)
def test_malformed_text(text):
    with pytest.raises(TermSyntaxError):
        parse_terms(text)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "%% only a comment\n",
        '{"1.0", [{"1.*"}], []}.',
        '{"1.0", [], [], extra}.',
        "[].",
    ],
)
def test_malformed_fragment_files(tmp_path, text):
    path = tmp_path / "relapp.appup.post.src"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(FragmentError):
        load_fragment(path)
