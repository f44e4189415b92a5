from __future__ import annotations

import json

import pytest

from bulk_import.models.processing_result import (
    BatchStatsAccumulator,
    ErrorDetail,
    ErrorKind,
    ImportReport,
)
from bulk_import.models.run_state import RunStage


def _report(**kw):
    base = dict(entity="employees", total=2, succeeded=1, failed=1,
                error_details=(ErrorDetail(3, "name is required"),))
    base.update(kw)
    return ImportReport(**base)


def test_to_dict_shape():
    data = _report(master_data_created={"departments": 1}, elapsed_seconds=0.1234567).to_dict()
    assert data["total"] == 2
    assert data["errorDetails"] == [{"row": 3, "message": "name is required"}]
    assert data["masterDataCreated"] == {"departments": 1}
    assert data["stage"] == "reported"
    assert data["cancelled"] is False
    assert data["elapsedSeconds"] == 0.123457


def test_to_json_round_trips_keys():
    data = json.loads(_report().to_json())
    assert set(data) == {
        "entity", "total", "succeeded", "failed", "inserted", "updated", "errorDetails",
        "warnings", "masterDataCreated", "cancelled", "stage", "elapsedSeconds",
    }


def test_error_lines_bounded():
    details = tuple(ErrorDetail(i, f"e{i}") for i in range(2, 7))
    lines = _report(error_details=details).error_lines(limit=2)
    assert lines == ["Row 2: e2", "Row 3: e3", "... and 3 more"]


def test_throughput_and_created():
    r = _report(elapsed_seconds=0.5, master_data_created={"a": 2, "b": 1})
    assert r.throughput_rows_per_sec == 2.0
    assert r.created_references == 3
    assert _report().throughput_rows_per_sec == 0.0


def test_is_fatal_only_for_decode_errors():
    assert not _report().is_fatal
    assert _report(error_details=(ErrorDetail(None, "file is empty", ErrorKind.DECODE),)).is_fatal


def test_backend_failure_is_not_fatal():
    report = _report(error_details=(ErrorDetail(None, "reconciling failed: connection lost", ErrorKind.BACKEND),))
    assert report.backend_failed
    assert not report.is_fatal
    assert not _report().backend_failed


def test_batch_stats_accumulator():
    acc = BatchStatsAccumulator()
    assert acc.get_stats() == (0, 0.0, 0.0)
    acc.add_batch_time(1.0)
    assert acc.get_stats() == (1, 1.0, 1.0)
    for t in (2.0, 3.0, 4.0):
        acc.add_batch_time(t)
    total, avg, p95 = acc.get_stats()
    assert total == 4 and avg == pytest.approx(2.5)
    assert 3.5 <= p95 <= 4.0


def test_run_stage_order():
    assert RunStage.IDLE.order < RunStage.DECODING.order < RunStage.REPORTED.order
