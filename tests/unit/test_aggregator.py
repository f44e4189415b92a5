from __future__ import annotations

from bulk_import.models.import_record import ImportRecord, ValidationOutcome
from bulk_import.models.processing_result import ErrorDetail, ErrorKind
from bulk_import.models.reconciled_row import Operation, ReconciledRow
from bulk_import.services.aggregator import ReportBuilder
from bulk_import.services.executor import ExecutionResult, RowOutcome


def test_each_row_counted_once():
    b = ReportBuilder("employees")
    b.total = 5
    b.row_error(2, "expected 2 fields, found 3", ErrorKind.ROW_DECODE)
    b.add_validation([ValidationOutcome(3, ("name is required",)), ValidationOutcome(4)])
    b.add_details([ErrorDetail(5, "Duplicate code", ErrorKind.DUPLICATE_KEY)])
    # a second failure for the same row is not counted again
    b.row_error(3, "again", ErrorKind.ROW_WRITE)
    result = ExecutionResult(outcomes=[
        RowOutcome(4, Operation.INSERT, "a"),
        RowOutcome(6, Operation.UPDATE, "b"),
    ])
    b.add_execution(result)
    report = b.build(1.0)
    assert report.failed == 3
    assert report.succeeded == 2
    assert (report.inserted, report.updated) == (1, 1)
    assert [d.row for d in report.error_details] == [2, 3, 5]


def test_reference_creation_errors_do_not_fail_rows():
    b = ReportBuilder("employees")
    b.add_details([ErrorDetail(2, "Failed to create Department 'X': boom", ErrorKind.REFERENCE_CREATION)])
    report = b.build(0.0)
    assert report.failed == 0
    assert report.error_lines() == ["Row 2: Failed to create Department 'X': boom"]


def test_warnings_kept_separately():
    b = ReportBuilder("assets")
    rec = ImportRecord(4, "assets", {}, warnings=["Employee 'E9' not found"])
    b.add_warnings([rec])
    report = b.build(0.0)
    assert report.failed == 0
    assert report.to_dict()["warnings"] == [{"row": 4, "message": "Employee 'E9' not found"}]


def test_file_error_listed_first():
    b = ReportBuilder("employees")
    b.row_error(3, "x", ErrorKind.ROW_VALIDATION)
    b.file_error("file is empty")
    report = b.build(0.0)
    assert str(report.error_details[0]) == "file is empty"
    assert report.is_fatal


def test_created_counts_merge():
    b = ReportBuilder("employees")
    b.add_created({"departments": 1})
    b.add_created({"departments": 2, "positions": 1})
    assert b.build(0.0).master_data_created == {"departments": 3, "positions": 1}



def test_unwritten_rows_fail_as_not_attempted():
    b = ReportBuilder("employees")
    b.total = 4
    b.row_error(3, "name is required", ErrorKind.ROW_VALIDATION)
    rows = [
        ReconciledRow(ImportRecord(n, "employees", {}), Operation.INSERT, (f"E{n}",))
        for n in (4, 5)
    ]
    b.add_execution(ExecutionResult(
        outcomes=[RowOutcome(2, Operation.INSERT, "a")], not_attempted=rows, cancelled=True,
    ))
    # already-failed rows keep their first error
    b.not_attempted([3], "run cancelled")
    report = b.build(0.0)
    assert report.total == report.succeeded + report.failed
    assert report.error_lines() == [
        "Row 3: name is required",
        "Row 4: not written: run cancelled",
        "Row 5: not written: run cancelled",
    ]
    assert report.error_details[1].kind is ErrorKind.NOT_ATTEMPTED
    assert report.cancelled
