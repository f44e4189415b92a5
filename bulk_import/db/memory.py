from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from ..config.entities import ENTITY_SCHEMAS
from ..errors import BatchWriteError, ReferenceCreationError
from ..models.import_record import normalize_key
from ..models.reconciled_row import Operation
from ..models.reference import ReferenceEntry, normalize_name
from .protocol import BulkWriteResult, ExistingRecord

"""In-memory backend.

Deterministic, thread-safe stand-in for the database used by ``--dry-run`` and
the test suite. Besides storage it records every call it receives and can be
told to fail:

- ``fail_create``: reference names (any case) whose creation raises
- ``fail_batches_over``: bulk writes with more rows than this raise
  ``BatchWriteError`` (single-row calls still go through)
- ``reject_row``: predicate returning an error string for rows to refuse
"""

__all__ = [
    "InMemoryBackend",
]


def _default_key_columns() -> dict[str, tuple[str, ...]]:
    columns: dict[str, tuple[str, ...]] = {}
    for schema in ENTITY_SCHEMAS.values():
        cols = []
        for name in schema.natural_key:
            spec = schema.field_spec(name)
            cols.append(spec.target_column if spec is not None else name)
        columns[schema.name] = tuple(cols)
    return columns


class InMemoryBackend:
    def __init__(
        self,
        key_columns: dict[str, tuple[str, ...]] | None = None,
        *,
        fail_create: Sequence[str] = (),
        fail_batches_over: int | None = None,
        reject_row: Callable[[dict[str, Any]], str | None] | None = None,
    ) -> None:
        self.key_columns = key_columns if key_columns is not None else _default_key_columns()
        self.fail_create = {normalize_name(n) for n in fail_create}
        self.fail_batches_over = fail_batches_over
        self.reject_row = reject_row
        self._lock = threading.Lock()
        self._references: dict[str, list[ReferenceEntry]] = {}
        self._parents: dict[tuple[str, Any], Any] = {}
        self._records: dict[str, dict[Any, dict[str, Any]]] = {}
        # call log
        self.lookup_calls: list[str] = []
        self.create_calls: list[tuple[str, str]] = []
        self.existing_calls: list[tuple[str, int]] = []
        self.write_calls: list[tuple[str, Operation, int]] = []

    # seeding -----------------------------------------------------------
    def seed_reference(self, kind: str, name: str, ref_id: Any | None = None,
                       parent_id: Any | None = None) -> Any:
        ref_id = ref_id if ref_id is not None else str(uuid.uuid4())
        with self._lock:
            self._references.setdefault(kind, []).append(ReferenceEntry(ref_id, name))
            if parent_id is not None:
                self._parents[(kind, ref_id)] = parent_id
        return ref_id

    def seed_record(self, entity: str, row: dict[str, Any]) -> Any:
        data = dict(row)
        data.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            self._records.setdefault(entity, {})[data["id"]] = data
        return data["id"]

    # inspection --------------------------------------------------------
    def references(self, kind: str) -> list[ReferenceEntry]:
        with self._lock:
            return list(self._references.get(kind, []))

    def parent_of(self, kind: str, ref_id: Any) -> Any | None:
        return self._parents.get((kind, ref_id))

    def records(self, entity: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._records.get(entity, {}).values()]

    # capabilities ------------------------------------------------------
    def lookup_reference(self, kind: str) -> list[ReferenceEntry]:
        with self._lock:
            self.lookup_calls.append(kind)
            if kind in self._references or kind not in self.key_columns:
                return list(self._references.get(kind, []))
            # entity tables double as reference kinds, named by their first key column
            column = self.key_columns[kind][0]
            return [
                ReferenceEntry(rid, str(row[column]))
                for rid, row in self._records.get(kind, {}).items()
                if row.get(column) is not None
            ]

    def create_reference(self, kind: str, name: str, parent_id: Any | None = None) -> Any:
        with self._lock:
            self.create_calls.append((kind, name))
            if normalize_name(name) in self.fail_create:
                raise ReferenceCreationError(kind, name, "rejected by backend")
        return self.seed_reference(kind, name, parent_id=parent_id)

    def _key_of(self, entity: str, row: dict[str, Any]) -> tuple[str, ...] | None:
        parts = tuple(row.get(c) for c in self.key_columns[entity])
        if any(p is None for p in parts):
            return None
        return normalize_key(parts)

    def lookup_existing(
        self, entity: str, keys: Sequence[tuple[str, ...]]
    ) -> list[ExistingRecord]:
        wanted = {normalize_key(k) for k in keys}
        found: list[ExistingRecord] = []
        with self._lock:
            self.existing_calls.append((entity, len(keys)))
            for rid, row in self._records.get(entity, {}).items():
                key = self._key_of(entity, row)
                if key is not None and key in wanted:
                    found.append(ExistingRecord(tuple(str(row[c]) for c in self.key_columns[entity]), rid))
        return found

    def bulk_write(
        self, entity: str, operation: Operation, rows: Sequence[dict[str, Any]]
    ) -> BulkWriteResult:
        with self._lock:
            self.write_calls.append((entity, operation, len(rows)))
            if self.fail_batches_over is not None and len(rows) > self.fail_batches_over:
                raise BatchWriteError(f"simulated failure for batch of {len(rows)} rows")
            table = self._records.setdefault(entity, {})
            existing = {self._key_of(entity, r): rid for rid, r in table.items()}
            result = BulkWriteResult()
            for row in rows:
                error = self.reject_row(row) if self.reject_row is not None else None
                if error is None and operation is Operation.INSERT:
                    key = self._key_of(entity, row)
                    if key is not None and key in existing:
                        error = f"duplicate key {key}"
                    elif row["id"] in table:
                        error = f"duplicate id {row['id']}"
                if error is None and operation is Operation.UPDATE and row["id"] not in table:
                    error = f"record {row['id']} not found"
                if error is not None:
                    result.failed.append((row, error))
                    continue
                if operation is Operation.INSERT:
                    table[row["id"]] = dict(row)
                    existing[self._key_of(entity, row)] = row["id"]
                else:
                    table[row["id"]].update(row)
                result.succeeded.append(row["id"])
            return result
