from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .import_record import ImportRecord, Unparseable
from .schema_models import EntitySchema

"""Terminal row representation handed to the batch executor."""

__all__ = [
    "Operation",
    "ReconciledRow",
]


class Operation(Enum):
    """Write operation a row maps to. Never mixed within one batch."""
    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class ReconciledRow:
    """A resolved record tagged Insert or Update.

    ``target_id`` is the existing identifier for updates and ``None`` for inserts
    (the executor assigns a fresh id right before submission).
    """
    record: ImportRecord
    operation: Operation
    natural_key: tuple[str, ...]
    target_id: Any | None = None

    @property
    def line_number(self) -> int:
        return self.record.line_number

    def payload(self, schema: EntitySchema, row_id: Any) -> dict[str, Any]:
        """Build the column -> value mapping sent to ``Backend.bulk_write``.

        Updates omit fields that only carry a default, so a stored value (an
        inactive status, say) survives a re-import of a file without that column.
        """
        data: dict[str, Any] = {"id": row_id}
        for spec in schema.fields:
            if schema.reference_spec(spec.name) is not None:
                continue
            if self.operation is Operation.UPDATE and spec.name in self.record.defaulted:
                continue
            value = self.record.values.get(spec.name)
            if isinstance(value, Unparseable):
                value = None
            data[spec.target_column] = value
        if schema.name_split is not None:
            data[schema.name_split.first] = self.record.values.get(schema.name_split.first)
            data[schema.name_split.last] = self.record.values.get(schema.name_split.last)
        for ref in schema.references:
            data[ref.column] = self.record.resolved.get(ref.field)
        return data
