from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from ..db.protocol import Backend
from ..errors import DecodeError, ProcessingError
from ..models.config_models import EngineConfig
from ..models.import_record import ImportRecord
from ..models.processing_result import ErrorKind, ImportReport
from ..models.reference import ReferenceSet
from ..models.row_data import RawRow
from ..models.run_state import ProgressEvent, RunStage
from ..models.schema_models import EntitySchema
from ..tabular.decoder import decode, read_workbook
from ..tabular.normalizer import normalize_rows
from .aggregator import ReportBuilder
from .executor import BatchExecutor, BatchMetrics
from .materializer import MaterializeResult, materialize
from .reconciler import find_duplicate_keys, load_existing_index, reconcile
from .resolver import load_reference_sets, resolve
from .validator import validate_all

"""Service orchestration for one import run.

``ReconciliationRun`` owns everything scoped to a single file: its reference
sets, its report builder and its cancel flag. Nothing is shared between runs.

Stages (never re-entered):
    decoding      -> bytes to RawRows; DecodeError jumps straight to reported
    validating    -> normalize, validate, reject repeated natural keys
    resolving     -> bulk load reference sets, resolve independent fields
    materializing -> per dependency level: create missing references, resolve
                     again, then resolve the next level against the new ids
    reconciling   -> one bulk existence lookup, tag Insert / Update
    executing     -> batched writes
    reported

``cancel()`` is honored between stages and before each batch submission. A
cancelled run still returns the report accumulated so far; decoded rows that
never reached a write are failed as not attempted.
"""

__all__ = [
    "ProgressCallback",
    "ReconciliationRun",
    "fatal_report",
    "import_file",
    "read_source",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

_STAGE_PERCENT = {
    RunStage.DECODING: 0.0,
    RunStage.VALIDATING: 10.0,
    RunStage.RESOLVING: 20.0,
    RunStage.MATERIALIZING: 30.0,
    RunStage.RECONCILING: 40.0,
    RunStage.EXECUTING: 50.0,
    RunStage.REPORTED: 100.0,
}


class ReconciliationRun:
    def __init__(
        self,
        schema: EntitySchema,
        backend: Backend,
        config: EngineConfig | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.schema = schema
        self.backend = backend
        self.config = config if config is not None else EngineConfig()
        self.progress = progress
        self.reference_sets: dict[str, ReferenceSet] = {}
        self._builder = ReportBuilder(schema.name)
        self._stage = RunStage.IDLE
        self._cancel = threading.Event()
        self._started = 0.0
        self._valid: list[ImportRecord] = []
        self._pending: list[int] = []  # decoded rows with no write outcome yet

    @property
    def stage(self) -> RunStage:
        return self._stage

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Request a stop; takes effect at the next stage boundary or batch."""
        logger.info("cancellation requested at stage %s", self._stage.value)
        self._cancel.set()

    # --- state machine -------------------------------------------------
    def _enter(self, stage: RunStage, message: str = "") -> None:
        if stage.order <= self._stage.order:
            raise ProcessingError(
                f"illegal transition {self._stage.value} -> {stage.value}"
            )
        self._stage = stage
        self._builder.stage = stage
        self._emit(_STAGE_PERCENT[stage], message or stage.value)

    def _emit(self, percent: float, message: str, batch: int = 0, total_batches: int = 0) -> None:
        if self.progress is not None:
            self.progress(ProgressEvent(self._stage, percent, message, batch, total_batches))

    def _stop_requested(self) -> bool:
        if self._cancel.is_set():
            self._builder.cancelled = True
            return True
        return False

    def _finish(self, unwritten: str = "run cancelled") -> ImportReport:
        builder = self._builder
        builder.add_warnings(self._valid)
        builder.not_attempted(self._pending, unwritten)
        self._pending = []
        if not builder.cancelled:
            self._stage = RunStage.REPORTED
            builder.stage = RunStage.REPORTED
        report = builder.build(time.perf_counter() - self._started)
        self._emit(100.0, "cancelled" if report.cancelled else "done")
        logger.info(
            "%s: total=%d succeeded=%d failed=%d%s",
            self.schema.name, report.total, report.succeeded, report.failed,
            " (cancelled)" if report.cancelled else "",
        )
        return report

    # --- pipeline ------------------------------------------------------
    def run(self, data: bytes | str, expected_columns: Iterable[str] | None = None) -> ImportReport:
        """Process one file's contents and return its report. Single use.

        Only a bad file stops the run at decoding. A later failure (a backend
        lookup losing its connection, say) ends the run at that stage with a
        file-level error; rows not yet written are failed as not attempted.
        """
        if self._stage is not RunStage.IDLE:
            raise ProcessingError("a reconciliation run can only be started once")
        self._started = time.perf_counter()
        builder = self._builder

        self._enter(RunStage.DECODING)
        try:
            decoded = decode(data, self.schema, expected_columns)
        except DecodeError as e:
            logger.error("decode failed: %s", e)
            builder.file_error(str(e))
            self._stage = RunStage.REPORTED
            builder.stage = RunStage.REPORTED
            return self._finish()
        builder.total = decoded.total_rows
        for issue in decoded.issues:
            builder.row_error(issue.line_number, issue.message, ErrorKind.ROW_DECODE)
        self._pending = [row.line_number for row in decoded.rows]
        try:
            return self._run_stages(decoded.rows)
        except ProcessingError:
            raise
        except Exception as e:
            stage = self._stage.value
            logger.exception("%s stage failed", stage)
            builder.file_error(f"{stage} failed: {e}", ErrorKind.BACKEND)
            return self._finish(f"{stage} failed")

    def _run_stages(self, raw_rows: list[RawRow]) -> ImportReport:
        builder = self._builder
        if self._stop_requested():
            return self._finish()

        self._enter(RunStage.VALIDATING, f"{len(raw_rows)} rows decoded")
        records = normalize_rows(raw_rows, self.schema, self.config.null_sentinels)
        checked = validate_all(records, self.schema)
        builder.add_validation(outcome for _, outcome in checked)
        valid = [record for record, outcome in checked if outcome.is_valid]
        valid, duplicates = find_duplicate_keys(valid, self.schema)
        builder.add_details(duplicates)
        self._valid = valid
        logger.info("%d of %d rows passed validation", len(valid), builder.total)
        if self._stop_requested():
            return self._finish()

        created = MaterializeResult()
        try:
            self._resolve_and_materialize(valid, created)
        finally:
            # entities created before a failure are committed and still reported
            builder.add_created(created.counts)
            builder.add_details(created.errors)
        if self._stop_requested():
            return self._finish()

        self._enter(RunStage.RECONCILING)
        index = load_existing_index(self.backend, self.schema, valid)
        rows = reconcile(valid, index, self.schema)
        if self._stop_requested():
            return self._finish()

        self._enter(RunStage.EXECUTING, f"{len(rows)} rows to write")
        executor = BatchExecutor(
            self.backend,
            self.schema,
            self.config.batch_size,
            self.config.max_workers,
            on_batch=self._on_batch,
            should_cancel=self._cancel.is_set,
        )
        result = executor.execute(rows)
        self._pending = []
        builder.add_execution(result)
        if result.not_attempted:
            logger.warning("%d row(s) not written: run cancelled", len(result.not_attempted))
        return self._finish()

    def _resolve_and_materialize(self, records: list[ImportRecord], created: MaterializeResult) -> None:
        levels = self.schema.reference_levels()

        self._enter(RunStage.RESOLVING)
        self.reference_sets = load_reference_sets(self.backend, self.schema.reference_kinds)
        if not levels:
            self._enter(RunStage.MATERIALIZING)
            return
        _, candidates = resolve(records, self.schema, self.reference_sets, levels[0])
        if self._stop_requested():
            return

        self._enter(RunStage.MATERIALIZING, f"{len(candidates)} unresolved references")
        for depth, level in enumerate(levels):
            if depth > 0:
                _, candidates = resolve(records, self.schema, self.reference_sets, level)
            if candidates:
                materialize(candidates, self.backend, self.reference_sets, created)
                resolve(records, self.schema, self.reference_sets, level, pending_only=True)

    def _on_batch(self, done: int, total: int, metrics: BatchMetrics) -> None:
        percent = 50.0 + 50.0 * done / total if total else 100.0
        self._emit(
            percent,
            f"{metrics.operation.value} batch {done}/{total} ({metrics.batch_size} rows)",
            batch=done,
            total_batches=total,
        )


def read_source(path: Path, sheet: str | None = None) -> bytes | str:
    """File contents for the decoder: workbooks are rendered to text first."""
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        return read_workbook(path, sheet)
    try:
        return path.read_bytes()
    except OSError as e:
        raise DecodeError(f"cannot read {path}: {e}") from e


def import_file(
    path: Path,
    schema: EntitySchema,
    backend: Backend,
    config: EngineConfig | None = None,
    *,
    progress: ProgressCallback | None = None,
    sheet: str | None = None,
) -> ImportReport:
    """Run a full import of one file. Unreadable files yield a fatal report."""
    run = ReconciliationRun(schema, backend, config, progress=progress)
    try:
        data = read_source(path, sheet)
    except DecodeError as e:
        logger.error("%s", e)
        return fatal_report(schema.name, str(e))
    return run.run(data)


def fatal_report(entity: str, message: str) -> ImportReport:
    """Report for a file that could not be read at all."""
    builder = ReportBuilder(entity)
    builder.file_error(message)
    builder.stage = RunStage.REPORTED
    return builder.build(0.0)
