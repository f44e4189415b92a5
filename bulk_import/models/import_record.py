from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Normalized, entity-typed records and their validation outcome."""

__all__ = [
    "normalize_key",
    "Unparseable",
    "ImportRecord",
    "ValidationOutcome",
]


def normalize_key(parts: tuple[object, ...]) -> tuple[str, ...]:
    """Comparison form of a natural key: each part trimmed and casefolded."""
    return tuple(str(p).strip().casefold() for p in parts)


@dataclass(frozen=True)
class Unparseable:
    """Marker for a value the normalizer could not coerce (e.g. a bad date).

    Kept instead of ``None`` so the validator can tell "absent" from "garbage".
    """
    raw: str

    def __str__(self) -> str:  # pragma: no cover (trivial)
        return self.raw


@dataclass
class ImportRecord:
    """One normalized row of an import file.

    ``values`` holds literal scalars keyed by canonical field name (``None`` means
    absent). ``references`` holds the free-text names of reference fields and
    ``resolved`` is filled in place by the resolver with backend identifiers.
    ``defaulted`` names the fields whose value came from a field default rather
    than the file; updates leave those columns untouched.
    """
    line_number: int
    entity: str
    values: dict[str, Any]
    references: dict[str, str | None] = field(default_factory=dict)
    resolved: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    defaulted: frozenset[str] = frozenset()

    def get(self, name: str) -> Any:
        if name in self.values:
            return self.values[name]
        return self.references.get(name)

    def natural_key(self, fields: tuple[str, ...]) -> tuple[str, ...] | None:
        """Return the stripped natural key, or None when any part is absent."""
        parts: list[str] = []
        for name in fields:
            value = self.get(name)
            if value is None or isinstance(value, Unparseable):
                return None
            text = str(value).strip()
            if not text:
                return None
            parts.append(text)
        return tuple(parts)


@dataclass(frozen=True)
class ValidationOutcome:
    """Pairs a source row number with zero or more error strings."""
    line_number: int
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        return ", ".join(self.errors)
