"""Tests for purge option parsing."""

from __future__ import annotations

import pytest

from appupgen.core.purge import PurgeOptionError, parse_purge_option
from appupgen.models.purge import PurgeMethod, PurgePolicy

SOFT = PurgeMethod.SOFT
BRUTAL = PurgeMethod.BRUTAL


def test_empty_option_uses_defaults():
    table = parse_purge_option(None)
    assert table.resolve("anything") == PurgePolicy(pre=BRUTAL, post=BRUTAL)
    assert parse_purge_option("").modules == {}


def test_per_module_and_default():
    table = parse_purge_option("default=soft;m1=soft/brutal;m2=brutal")
    assert table.resolve("m1") == PurgePolicy(pre=SOFT, post=BRUTAL)
    assert table.resolve("m2") == PurgePolicy(pre=BRUTAL, post=BRUTAL)
    assert table.resolve("other") == PurgePolicy(pre=SOFT, post=SOFT)


def test_fallback_default_argument():
    table = parse_purge_option("m=soft", default=PurgePolicy(pre=SOFT, post=BRUTAL))
    assert table.resolve("x") == PurgePolicy(pre=SOFT, post=BRUTAL)


def test_entries_without_single_equals_are_ignored():
    table = parse_purge_option("garbage;m=soft;a=b=c;")
    assert set(table.modules) == {"m"}


def test_whitespace_tolerated():
    table = parse_purge_option(" m = soft / brutal ")
    assert table.resolve("m") == PurgePolicy(pre=SOFT, post=BRUTAL)


@pytest.mark.parametrize("option", ["m=gentle", "m=soft/never", "m=soft/brutal/soft"])
def test_bad_values(option):
    with pytest.raises(PurgeOptionError):
        parse_purge_option(option)
