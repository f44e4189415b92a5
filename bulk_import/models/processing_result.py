from __future__ import annotations

import json
import statistics
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .run_state import RunStage

"""Import report models.

ImportReport is the only artifact a caller receives. It is immutable once
built; ``BatchStatsAccumulator`` collects per-batch timings while the executor
runs.
"""

__all__ = [
    "ErrorKind",
    "ErrorDetail",
    "ImportReport",
    "BatchStatsAccumulator",
]


class ErrorKind(Enum):
    """Where in the pipeline an error was recorded."""
    DECODE = "DECODE_ERROR"  # whole file, fatal
    ROW_DECODE = "ROW_DECODE_ERROR"
    ROW_VALIDATION = "ROW_VALIDATION_ERROR"
    DUPLICATE_KEY = "DUPLICATE_NATURAL_KEY"
    REFERENCE_CREATION = "REFERENCE_CREATION_ERROR"
    ROW_WRITE = "ROW_WRITE_ERROR"
    NOT_ATTEMPTED = "ROW_NOT_ATTEMPTED"  # cancelled or stopped before its write
    BACKEND = "BACKEND_ERROR"  # whole run stopped by a failing backend call


@dataclass(frozen=True)
class ErrorDetail:
    """One row-prefixed message. ``row`` is None for file-level entries."""
    row: int | None
    message: str
    kind: ErrorKind = ErrorKind.ROW_VALIDATION

    def __str__(self) -> str:
        if self.row is None:
            return self.message
        return f"Row {self.row}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass(frozen=True)
class ImportReport:
    """Caller-visible summary of one import run."""
    entity: str
    total: int
    succeeded: int
    failed: int
    inserted: int = 0
    updated: int = 0
    error_details: tuple[ErrorDetail, ...] = ()
    warnings: tuple[ErrorDetail, ...] = ()
    master_data_created: dict[str, int] = field(default_factory=dict)
    cancelled: bool = False
    stage: RunStage = RunStage.REPORTED  # last stage entered before reporting
    elapsed_seconds: float = 0.0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def created_references(self) -> int:
        return sum(self.master_data_created.values())

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.succeeded / self.elapsed_seconds

    @property
    def is_fatal(self) -> bool:
        return any(d.kind is ErrorKind.DECODE for d in self.error_details)

    @property
    def backend_failed(self) -> bool:
        """The run stopped early because a backend call failed."""
        return any(d.kind is ErrorKind.BACKEND for d in self.error_details)

    def error_lines(self, limit: int | None = None) -> list[str]:
        """Human-readable "Row N: message" strings, optionally bounded."""
        details = self.error_details if limit is None else self.error_details[:limit]
        lines = [str(d) for d in details]
        if limit is not None and len(self.error_details) > limit:
            lines.append(f"... and {len(self.error_details) - limit} more")
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "inserted": self.inserted,
            "updated": self.updated,
            "errorDetails": [d.to_dict() for d in self.error_details],
            "warnings": [d.to_dict() for d in self.warnings],
            "masterDataCreated": dict(self.master_data_created),
            "cancelled": self.cancelled,
            "stage": self.stage.value,
            "elapsedSeconds": round(self.elapsed_seconds, 6),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class BatchStatsAccumulator:
    """Helper class to accumulate batch timing statistics for the report.

    Collects individual batch timing data and calculates summary statistics.
    Callers running batches on several threads must serialize ``add_batch_time``.
    """

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        """Add a batch timing measurement."""
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
