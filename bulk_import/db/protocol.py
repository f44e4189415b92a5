from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..models.reconciled_row import Operation
from ..models.reference import ReferenceEntry

"""Backend capability interface.

The engine never talks to storage directly; it consumes these four bulk
capabilities. Implementations: ``InMemoryBackend`` (dry runs, tests) and
``PostgresBackend``.

Failure contract:
- ``create_reference`` raises ``ReferenceCreationError`` for one value.
- ``bulk_write`` raises ``BatchWriteError`` when the whole call failed (nothing
  was written); row-level rejections are returned in ``BulkWriteResult.failed``.
"""

__all__ = [
    "ExistingRecord",
    "BulkWriteResult",
    "Backend",
]


@dataclass(frozen=True)
class ExistingRecord:
    natural_key: tuple[str, ...]
    id: Any


@dataclass(frozen=True)
class BulkWriteResult:
    succeeded: list[Any] = field(default_factory=list)  # ids
    failed: list[tuple[dict[str, Any], str]] = field(default_factory=list)  # (row, error)


@runtime_checkable
class Backend(Protocol):
    def lookup_reference(self, kind: str) -> list[ReferenceEntry]:
        """Bulk load every existing row of one reference kind."""
        ...

    def create_reference(self, kind: str, name: str, parent_id: Any | None = None) -> Any:
        """Create one reference row and return its id. Not assumed idempotent."""
        ...

    def lookup_existing(
        self, entity: str, keys: Sequence[tuple[str, ...]]
    ) -> list[ExistingRecord]:
        """Bulk existence check by natural key."""
        ...

    def bulk_write(
        self, entity: str, operation: Operation, rows: Sequence[dict[str, Any]]
    ) -> BulkWriteResult:
        """Write one batch; every row carries its ``id``."""
        ...
