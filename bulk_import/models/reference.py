from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

"""Reference sets (name <-> id lookup tables) and creation candidates.

A ReferenceSet is built once per run from a bulk load of one reference kind and
is owned by that run only. Lookups are case-insensitive; when the backing store
holds the same name twice the first loaded row wins.
"""

__all__ = [
    "normalize_name",
    "ReferenceEntry",
    "ReferenceSet",
    "CreationCandidate",
]


def normalize_name(value: str) -> str:
    """Trim, collapse internal whitespace and casefold a reference name."""
    return " ".join(value.split()).casefold()


@dataclass(frozen=True)
class ReferenceEntry:
    """One row returned by ``Backend.lookup_reference``."""
    id: Any
    name: str


class ReferenceSet:
    """Bidirectional name/id mapping for a single reference kind."""

    def __init__(self, kind: str, entries: Iterable[ReferenceEntry] = ()) -> None:
        self.kind = kind
        self._exact: dict[str, Any] = {}
        self._trimmed: dict[str, Any] = {}
        self._names: dict[Any, str] = {}
        for entry in entries:
            self.add(entry.id, entry.name)

    def add(self, ref_id: Any, name: str) -> None:
        if name is None:
            return
        # setdefault keeps the first row for duplicate names
        self._exact.setdefault(name.casefold(), ref_id)
        key = normalize_name(name)
        if key:
            self._trimmed.setdefault(key, ref_id)
        self._names.setdefault(ref_id, name)

    def lookup(self, value: str) -> Any | None:
        """Exact case-insensitive match first, then whitespace-trimmed match."""
        if value is None:
            return None
        hit = self._exact.get(value.casefold())
        if hit is not None:
            return hit
        return self._trimmed.get(normalize_name(value))

    def partial_lookup(self, value: str) -> Any | None:
        """Unique containment match in either direction, else None."""
        key = normalize_name(value)
        if not key:
            return None
        matches = {
            ref_id
            for name, ref_id in self._trimmed.items()
            if key in name or name in key
        }
        if len(matches) == 1:
            return next(iter(matches))
        return None

    def name_of(self, ref_id: Any) -> str | None:
        return self._names.get(ref_id)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and self.lookup(value) is not None

    def __len__(self) -> int:
        return len(self._names)


@dataclass(frozen=True)
class CreationCandidate:
    """An unresolved reference value seen on one row.

    The resolver emits one candidate per miss; the materializer deduplicates
    them by ``(kind, key)`` before any write.
    """
    kind: str
    name: str  # display name as written in the file (trimmed)
    line_number: int
    label: str = ""
    parent_id: Any | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, normalize_name(self.name))
