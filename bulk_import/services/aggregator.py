from __future__ import annotations

import logging
from collections.abc import Iterable

from ..models.import_record import ImportRecord, ValidationOutcome
from ..models.processing_result import ErrorDetail, ErrorKind, ImportReport
from ..models.reconciled_row import Operation
from ..models.run_state import RunStage
from .executor import ExecutionResult

"""Result aggregator.

Accumulates every row source into one ImportReport:
- decode issues, validation errors, duplicate keys and write failures each mark
  their row failed exactly once (a row is never counted twice)
- rows a cancel or a backend failure left unwritten are failed as not
  attempted, so total always equals succeeded + failed
- reference creation failures are listed but the affected rows carry on
- warnings (ignored dates, unknown non-creatable references) never fail a row
"""

__all__ = [
    "ReportBuilder",
]

logger = logging.getLogger(__name__)


def _sort_key(detail: ErrorDetail) -> tuple[int, int]:
    return (0, 0) if detail.row is None else (1, detail.row)


class ReportBuilder:
    def __init__(self, entity: str) -> None:
        self.entity = entity
        self.total = 0
        self.inserted = 0
        self.updated = 0
        self.errors: list[ErrorDetail] = []
        self.warnings: list[ErrorDetail] = []
        self.master_data_created: dict[str, int] = {}
        self.failed_rows: set[int] = set()
        self.cancelled = False
        self.stage = RunStage.IDLE
        self._batch_stats: tuple[int, float, float] = (0, 0.0, 0.0)

    def file_error(self, message: str, kind: ErrorKind = ErrorKind.DECODE) -> None:
        self.errors.append(ErrorDetail(None, message, kind))

    def row_error(self, row: int, message: str, kind: ErrorKind) -> None:
        """Record a terminal failure for ``row``; only the first one counts."""
        if row in self.failed_rows:
            logger.debug("row %d already failed; dropping '%s'", row, message)
            return
        self.failed_rows.add(row)
        self.errors.append(ErrorDetail(row, message, kind))

    def not_attempted(self, rows: Iterable[int], reason: str) -> None:
        """Fail rows that never reached a write; rows already failed keep their error."""
        for row in rows:
            self.row_error(row, f"not written: {reason}", ErrorKind.NOT_ATTEMPTED)

    def add_validation(self, outcomes: Iterable[ValidationOutcome]) -> None:
        for outcome in outcomes:
            if not outcome.is_valid:
                self.row_error(outcome.line_number, outcome.message, ErrorKind.ROW_VALIDATION)

    def add_warnings(self, records: Iterable[ImportRecord]) -> None:
        for record in records:
            for message in record.warnings:
                self.warnings.append(ErrorDetail(record.line_number, message, ErrorKind.ROW_VALIDATION))

    def add_details(self, details: Iterable[ErrorDetail]) -> None:
        """Row failures (decode, duplicate key) or reference creation errors."""
        for detail in details:
            if detail.kind is ErrorKind.REFERENCE_CREATION or detail.row is None:
                self.errors.append(detail)
            else:
                self.row_error(detail.row, detail.message, detail.kind)

    def add_created(self, counts: dict[str, int]) -> None:
        for kind, count in counts.items():
            self.master_data_created[kind] = self.master_data_created.get(kind, 0) + count

    def add_execution(self, result: ExecutionResult) -> None:
        for outcome in result.outcomes:
            if outcome.succeeded:
                if outcome.operation is Operation.INSERT:
                    self.inserted += 1
                else:
                    self.updated += 1
            else:
                self.row_error(outcome.line_number, outcome.error or "write failed", ErrorKind.ROW_WRITE)
        self.not_attempted((r.line_number for r in result.not_attempted), "run cancelled")
        self._batch_stats = result.stats.get_stats()
        if result.cancelled:
            self.cancelled = True

    def build(self, elapsed_seconds: float) -> ImportReport:
        succeeded = self.inserted + self.updated
        total_batches, avg, p95 = self._batch_stats
        return ImportReport(
            entity=self.entity,
            total=self.total,
            succeeded=succeeded,
            failed=len(self.failed_rows),
            inserted=self.inserted,
            updated=self.updated,
            error_details=tuple(sorted(self.errors, key=_sort_key)),
            warnings=tuple(sorted(self.warnings, key=_sort_key)),
            master_data_created=dict(self.master_data_created),
            cancelled=self.cancelled,
            stage=self.stage,
            elapsed_seconds=elapsed_seconds,
            total_batches=total_batches,
            avg_batch_seconds=avg,
            p95_batch_seconds=p95,
        )
