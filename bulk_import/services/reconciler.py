from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..db.protocol import Backend
from ..models.import_record import ImportRecord, normalize_key
from ..models.processing_result import ErrorDetail, ErrorKind
from ..models.reconciled_row import Operation, ReconciledRow
from ..models.schema_models import EntitySchema

"""Natural-key reconciler.

- ``find_duplicate_keys`` runs right after validation: the first row carrying a
  key wins, later rows with the same key (trimmed, case-insensitive) are
  rejected before they can trigger reference creation or race in the executor.
- ``load_existing_index`` is the single bulk existence lookup for the file.
- ``reconcile`` tags each record Insert or Update.
"""

__all__ = [
    "find_duplicate_keys",
    "load_existing_index",
    "reconcile",
]

logger = logging.getLogger(__name__)


def _key_label(schema: EntitySchema) -> str:
    return " + ".join(schema.natural_key)


def find_duplicate_keys(
    records: Sequence[ImportRecord], schema: EntitySchema
) -> tuple[list[ImportRecord], list[ErrorDetail]]:
    """Split records into first occurrences and rejected repeats."""
    seen: dict[tuple[str, ...], int] = {}
    unique: list[ImportRecord] = []
    errors: list[ErrorDetail] = []
    for record in records:
        key = record.natural_key(schema.natural_key)
        if key is None:
            unique.append(record)
            continue
        norm = normalize_key(key)
        first_line = seen.get(norm)
        if first_line is None:
            seen[norm] = record.line_number
            unique.append(record)
            continue
        errors.append(
            ErrorDetail(
                record.line_number,
                f"Duplicate {_key_label(schema)} '{'/'.join(key)}' found in import data "
                f"(first seen on row {first_line})",
                ErrorKind.DUPLICATE_KEY,
            )
        )
    if errors:
        logger.warning("%d row(s) repeat a natural key already used in the file", len(errors))
    return unique, errors


def load_existing_index(
    backend: Backend, schema: EntitySchema, records: Sequence[ImportRecord]
) -> dict[tuple[str, ...], Any]:
    """Normalized natural key -> existing id, from one bulk lookup."""
    keys = []
    for record in records:
        key = record.natural_key(schema.natural_key)
        if key is not None:
            keys.append(key)
    if not keys:
        return {}
    index: dict[tuple[str, ...], Any] = {}
    for existing in backend.lookup_existing(schema.name, keys):
        # first match wins when the store holds the key twice
        index.setdefault(normalize_key(existing.natural_key), existing.id)
    logger.debug("%d of %d keys already exist", len(index), len(keys))
    return index


def reconcile(
    records: Sequence[ImportRecord],
    existing_index: dict[tuple[str, ...], Any],
    schema: EntitySchema,
) -> list[ReconciledRow]:
    rows: list[ReconciledRow] = []
    for record in records:
        key = record.natural_key(schema.natural_key) or ()
        target = existing_index.get(normalize_key(key)) if key else None
        if target is None:
            rows.append(ReconciledRow(record, Operation.INSERT, key))
        else:
            rows.append(ReconciledRow(record, Operation.UPDATE, key, target))
    return rows
