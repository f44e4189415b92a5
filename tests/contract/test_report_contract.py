from __future__ import annotations

import json
import re
from pathlib import Path

from bulk_import.cli import main as cli_main
from bulk_import.db.memory import InMemoryBackend
from bulk_import.services.orchestrator import ReconciliationRun

"""Contract tests for the caller-visible outputs.

- JSON report keys (camelCase, fixed set)
- JSON Lines error log keys
- SUMMARY line shape
- exit codes 0 / 1 / 2
"""

REPORT_KEYS = {
    "entity",
    "total",
    "succeeded",
    "failed",
    "inserted",
    "updated",
    "errorDetails",
    "warnings",
    "masterDataCreated",
    "cancelled",
    "stage",
    "elapsedSeconds",
}
ERROR_LOG_KEYS = {"timestamp", "file", "entity", "row", "error_type", "message"}
SUMMARY_RE = re.compile(
    r"^SUMMARY entity=\w+ total=\d+ succeeded=\d+ failed=\d+ inserted=\d+ updated=\d+ "
    r"created_refs=\d+ elapsed_sec=[0-9.]+ throughput_rps=[0-9.]+$"
)


def _write(temp_workdir: Path, text: str, name: str = "employees.csv") -> Path:
    path = temp_workdir / "data" / name
    path.write_text(text, encoding="utf-8")
    return path


def test_report_json_keys(employees_schema, make_csv):
    report = ReconciliationRun(employees_schema, InMemoryBackend()).run(
        make_csv("code,name,department", "E1,Alice,Ops", "E2,,Ops")
    )
    data = json.loads(report.to_json())
    assert set(data) == REPORT_KEYS
    assert data["stage"] == "reported"
    assert data["errorDetails"] == [{"row": 3, "message": "name is required"}]
    assert data["total"] == data["succeeded"] + data["failed"]


def test_summary_line_shape(temp_workdir: Path, capsys):
    path = _write(temp_workdir, "code,name\nE1,Alice\n")
    cli_main(["employees", str(path), "--dry-run"])
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("SUMMARY")]
    assert len(lines) == 1
    assert SUMMARY_RE.match(lines[0]), lines[0]


def test_error_log_keys(temp_workdir: Path):
    path = _write(temp_workdir, "code,name,email\nE1,Alice,a@example.com\nE1,Bob,\nE3,Carol,nope\n\"E4,x\n")
    cli_main(["employees", str(path), "--dry-run"])
    log = next((temp_workdir / "logs").glob("errors-*.log"))
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    assert [r["row"] for r in records] == [3, 4, 5]
    assert {r["error_type"] for r in records} == {
        "ROW_VALIDATION_ERROR", "DUPLICATE_NATURAL_KEY", "ROW_DECODE_ERROR",
    }
    for record in records:
        assert set(record) == ERROR_LOG_KEYS
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$", record["timestamp"])


def test_file_level_error_logged_with_row_minus_one(temp_workdir: Path):
    path = _write(temp_workdir, "code,name\n")
    assert cli_main(["employees", str(path), "--dry-run"]) == 1
    log = next((temp_workdir / "logs").glob("errors-*.log"))
    record = json.loads(log.read_text(encoding="utf-8").splitlines()[0])
    assert record["row"] == -1
    assert record["error_type"] == "DECODE_ERROR"


def test_exit_codes(temp_workdir: Path):
    ok = _write(temp_workdir, "code,name\nE1,Alice\n", "ok.csv")
    partial = _write(temp_workdir, "code,name\nE1,Alice\nE2,\n", "partial.csv")
    assert cli_main(["employees", str(ok), "--dry-run"]) == 0
    assert cli_main(["employees", str(partial), "--dry-run"]) == 2
    assert cli_main(["employees", str(temp_workdir / "data" / "missing.csv"), "--dry-run"]) == 1
