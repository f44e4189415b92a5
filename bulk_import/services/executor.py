from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from ..db.protocol import Backend
from ..errors import BatchWriteError
from ..models.processing_result import BatchStatsAccumulator
from ..models.reconciled_row import Operation, ReconciledRow
from ..models.schema_models import EntitySchema

"""Batch executor.

- Inserts and updates are chunked separately (never mixed in one call); all
  insert batches run before any update batch.
- Batches go to a bounded thread pool. Each batch is one ``bulk_write`` call;
  when the call raises ``BatchWriteError`` its rows are retried one at a time
  so a single bad row only costs itself.
- Any other exception from a batch fails that batch's rows with the error
  text; it never escapes ``execute``.
- Insert ids are generated here (uuid4) right before submission.
- ``should_cancel`` is checked before each batch is submitted; skipped batches
  leave their rows without an outcome and are reported as not attempted.
"""

__all__ = [
    "BatchMetrics",
    "RowOutcome",
    "ExecutionResult",
    "BatchExecutor",
    "chunk",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one submitted batch."""
    operation: Operation
    batch_size: int
    elapsed_seconds: float
    fell_back: bool = False


@dataclass(frozen=True)
class RowOutcome:
    line_number: int
    operation: Operation
    row_id: Any | None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ExecutionResult:
    outcomes: list[RowOutcome] = field(default_factory=list)
    not_attempted: list[ReconciledRow] = field(default_factory=list)
    batches: list[BatchMetrics] = field(default_factory=list)
    stats: BatchStatsAccumulator = field(default_factory=BatchStatsAccumulator)
    cancelled: bool = False

    @property
    def succeeded(self) -> list[RowOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[RowOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


def chunk(rows: Sequence[ReconciledRow], size: int) -> list[list[ReconciledRow]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(rows[i:i + size]) for i in range(0, len(rows), size)]


class BatchExecutor:
    def __init__(
        self,
        backend: Backend,
        schema: EntitySchema,
        batch_size: int,
        max_workers: int = 1,
        *,
        on_batch: Callable[[int, int, BatchMetrics], None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        self.backend = backend
        self.schema = schema
        self.batch_size = batch_size
        self.max_workers = max(1, max_workers)
        self.on_batch = on_batch
        self.should_cancel = should_cancel or (lambda: False)
        self._lock = threading.Lock()

    def plan(self, rows: Sequence[ReconciledRow]) -> list[list[ReconciledRow]]:
        inserts = [r for r in rows if r.operation is Operation.INSERT]
        updates = [r for r in rows if r.operation is Operation.UPDATE]
        return chunk(inserts, self.batch_size) + chunk(updates, self.batch_size)

    def execute(self, rows: Sequence[ReconciledRow]) -> ExecutionResult:
        batches = self.plan(rows)
        result = ExecutionResult()
        total = len(batches)
        done = 0

        def _run(batch: list[ReconciledRow]) -> None:
            nonlocal done
            if self.should_cancel():
                with self._lock:
                    result.cancelled = True
                    result.not_attempted.extend(batch)
                return
            try:
                outcomes, metrics = self._submit(batch)
            except Exception as e:
                logger.exception("%s batch of %d rows failed", batch[0].operation.value, len(batch))
                outcomes = [
                    RowOutcome(r.line_number, r.operation, r.target_id, f"batch write failed: {e}")
                    for r in batch
                ]
                metrics = BatchMetrics(batch[0].operation, len(batch), 0.0)
            with self._lock:
                result.outcomes.extend(outcomes)
                result.batches.append(metrics)
                result.stats.add_batch_time(metrics.elapsed_seconds)
                done += 1
                current = done
            if self.on_batch is not None:
                self.on_batch(current, total, metrics)

        insert_batches = [b for b in batches if b[0].operation is Operation.INSERT]
        update_batches = [b for b in batches if b[0].operation is Operation.UPDATE]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for group in (insert_batches, update_batches):
                # each group finishes before the next starts
                for future in [pool.submit(_run, b) for b in group]:
                    future.result()

        result.outcomes.sort(key=lambda o: o.line_number)
        result.not_attempted.sort(key=lambda r: r.line_number)
        return result

    def _payloads(self, batch: Sequence[ReconciledRow]) -> list[dict[str, Any]]:
        payloads = []
        for row in batch:
            row_id = str(uuid.uuid4()) if row.operation is Operation.INSERT else row.target_id
            payloads.append(row.payload(self.schema, row_id))
        return payloads

    def _submit(self, batch: list[ReconciledRow]) -> tuple[list[RowOutcome], BatchMetrics]:
        operation = batch[0].operation
        payloads = self._payloads(batch)
        start = time.perf_counter()
        try:
            written = self.backend.bulk_write(self.schema.name, operation, payloads)
        except BatchWriteError as e:
            logger.warning(
                "%s batch of %d rows failed (%s); retrying row by row",
                operation.value, len(batch), e,
            )
            outcomes = self._fallback(batch, payloads)
            elapsed = time.perf_counter() - start
            return outcomes, BatchMetrics(operation, len(batch), elapsed, fell_back=True)
        elapsed = time.perf_counter() - start
        return self._match(batch, payloads, written.succeeded, written.failed), BatchMetrics(
            operation, len(batch), elapsed
        )

    def _match(
        self,
        batch: Sequence[ReconciledRow],
        payloads: Sequence[dict[str, Any]],
        succeeded: Sequence[Any],
        failed: Sequence[tuple[dict[str, Any], str]],
    ) -> list[RowOutcome]:
        ok = set(succeeded)
        errors = {row.get("id"): error for row, error in failed}
        outcomes = []
        for row, payload in zip(batch, payloads):
            row_id = payload["id"]
            if row_id in errors:
                outcomes.append(RowOutcome(row.line_number, row.operation, row_id, errors[row_id]))
            elif row_id in ok:
                outcomes.append(RowOutcome(row.line_number, row.operation, row_id))
            else:
                outcomes.append(
                    RowOutcome(row.line_number, row.operation, row_id, "no result returned for row")
                )
        return outcomes

    def _fallback(
        self, batch: Sequence[ReconciledRow], payloads: Sequence[dict[str, Any]]
    ) -> list[RowOutcome]:
        outcomes = []
        for row, payload in zip(batch, payloads):
            try:
                written = self.backend.bulk_write(self.schema.name, row.operation, [payload])
            except Exception as e:
                outcomes.append(RowOutcome(row.line_number, row.operation, payload["id"], str(e)))
                continue
            outcomes.extend(self._match([row], [payload], written.succeeded, written.failed))
        return outcomes
