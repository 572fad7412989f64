"""Module-level call graph built from artifact import tables.

A module M calls module N when N appears as the module of an entry in M's
import table. The index is an explicit handle: open it over a set of
directories, query it, close it (or use it as a context manager).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from appupgen.core.beam import read_module_info

logger = logging.getLogger(__name__)


class CallGraphClosedError(RuntimeError):
    """Raised when a closed index is queried."""


class CallGraphIndex:
    """Static ``module -> called modules`` relation over artifact directories.

    Parameters
    ----------
    extension:
        Artifact file extension scanned in each directory.
    """

    def __init__(self, *, extension: str = ".beam") -> None:
        self._extension = extension
        self._calls: dict[str, frozenset[str]] = {}
        self._closed = False

    @classmethod
    def open(cls, directories: Iterable[str | Path], *, extension: str = ".beam") -> CallGraphIndex:
        """Build an index over every artifact in *directories*."""
        index = cls(extension=extension)
        for directory in dict.fromkeys(Path(d) for d in directories):
            index.add_directory(directory)
        return index

    def __enter__(self) -> CallGraphIndex:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise CallGraphClosedError("Call graph index has been closed")

    def add_directory(self, directory: str | Path) -> None:
        """Index every artifact in *directory*; later entries win on name clash."""
        self._check_open()
        for path in sorted(Path(directory).glob(f"*{self._extension}")):
            info = read_module_info(path)
            self._calls[info.name] = frozenset(info.imported_modules)
        logger.debug("Indexed %s (%d modules known)", directory, len(self._calls))

    def add_module(self, name: str, calls: Iterable[str]) -> None:
        """Register a module's outgoing calls directly."""
        self._check_open()
        self._calls[name] = frozenset(calls)

    @property
    def modules(self) -> set[str]:
        self._check_open()
        return set(self._calls)

    def calls(self, module: str, candidates: Iterable[str]) -> set[str]:
        """Which of *candidates* does *module* call (self-calls excluded)."""
        self._check_open()
        called = self._calls.get(module, frozenset())
        return {c for c in candidates if c in called and c != module}

    def close(self) -> None:
        self._calls.clear()
        self._closed = True


def module_dependencies(index: CallGraphIndex, modules: Iterable[str]) -> dict[str, list[str]]:
    """For each module, the sorted list of other *modules* it calls."""
    modules = sorted(set(modules))
    deps = {module: sorted(index.calls(module, modules)) for module in modules}
    logger.debug("deps: %s", deps)
    return deps
