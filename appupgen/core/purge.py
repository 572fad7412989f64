"""Purge option parsing.

Format: semicolon separated ``Module=Pre/Post`` or ``Module=Both`` entries,
where each value is ``soft`` or ``brutal``. The reserved module name
``default`` sets the policy for every module not listed::

    default=soft;m1=soft/brutal;m2=brutal
"""

from __future__ import annotations

from appupgen.models.purge import PurgeMethod, PurgePolicy, PurgeTable

DEFAULT_KEY = "default"

_WORDS = {"soft": PurgeMethod.SOFT, "brutal": PurgeMethod.BRUTAL}


class PurgeOptionError(ValueError):
    """Raised for a purge value other than ``soft`` or ``brutal``."""


def _method(word: str) -> PurgeMethod:
    try:
        return _WORDS[word.strip()]
    except KeyError:
        raise PurgeOptionError(
            f"Unknown purge type {word!r} (expected 'soft' or 'brutal')"
        ) from None


def parse_purge_option(text: str | None, *, default: PurgePolicy | None = None) -> PurgeTable:
    """Build a ``PurgeTable`` from the command line purge option.

    Entries without ``=`` are ignored.
    """
    table_default = default or PurgePolicy()
    modules: dict[str, PurgePolicy] = {}
    for entry in (text or "").split(";"):
        if entry.count("=") != 1:
            continue
        module, value = (part.strip() for part in entry.split("="))
        parts = value.split("/")
        if len(parts) == 1:
            pre = post = _method(parts[0])
        elif len(parts) == 2:
            pre, post = _method(parts[0]), _method(parts[1])
        else:
            raise PurgeOptionError(f"Bad purge value {value!r} for {module!r}")
        policy = PurgePolicy(pre=pre, post=post)
        if module == DEFAULT_KEY:
            table_default = policy
        else:
            modules[module] = policy
    return PurgeTable(default=table_default, modules=modules)
