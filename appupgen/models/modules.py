"""Per-module metadata read from an artifact's chunks."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ModuleInfo(BaseModel):
    """Name, attributes, exports and imports of one compiled module."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    attributes: dict[str, list[Any]] = {}
    exports: list[tuple[str, int]] = []
    imports: list[tuple[str, str, int]] = []

    @property
    def declared_behaviours(self) -> list[str]:
        """Every ``behaviour``/``behavior`` value, in declaration order."""
        return [
            str(b)
            for key in ("behaviour", "behavior")
            for b in self.attributes.get(key, [])
        ]

    @property
    def imported_modules(self) -> set[str]:
        return {module for module, _fn, _arity in self.imports}

    def exports_function(self, name: str) -> bool:
        """True when any arity of *name* is exported."""
        return any(fn == name for fn, _arity in self.exports)
