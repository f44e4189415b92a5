from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .processing_result import ErrorDetail

"""ErrorRecord model for error logging.

Structured error record written as JSON Lines by ``ErrorLogBuffer``. Supports
row=-1 as a sentinel value for file-level errors where no source row applies.
The key set is fixed: timestamp, file, entity, row, error_type, message.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Import filename being processed
        entity: Entity type being imported (employees, assets, sim_cards)
        row: Row number (1-based). Use -1 for file-level errors where row is unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    entity: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, entity: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            entity=entity,
            row=row,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_detail(file: str, entity: str, detail: ErrorDetail) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            entity=entity,
            row=detail.row if detail.row is not None else -1,
            error_type=detail.kind.value,
            message=detail.message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
