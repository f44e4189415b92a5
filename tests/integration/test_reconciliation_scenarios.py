from __future__ import annotations

from bulk_import.db.memory import InMemoryBackend
from bulk_import.models.config_models import EngineConfig
from bulk_import.models.reconciled_row import Operation
from bulk_import.services.orchestrator import ReconciliationRun

"""End-to-end runs against the in-memory backend.

Each scenario builds a CSV, runs a fresh ReconciliationRun and checks the
report together with what the backend was asked to do.
"""


def _run(schema, backend, text, **cfg):
    return ReconciliationRun(schema, backend, EngineConfig(**cfg)).run(text)


def test_missing_required_value(employees_schema, backend, make_csv):
    report = _run(employees_schema, backend, make_csv("code,name", "E1,Alice", "E2,"))
    assert report.total == 2
    assert report.succeeded == 1
    assert report.failed == 1
    assert report.to_dict()["errorDetails"] == [{"row": 3, "message": "name is required"}]


def test_second_import_updates_instead_of_inserting(employees_schema, backend, make_csv):
    text = make_csv("code,name,department", *(f"E{i},Person {i},Ops" for i in range(20)))
    first = _run(employees_schema, backend, text)
    assert first.inserted == 20 and first.updated == 0
    second = _run(employees_schema, backend, text)
    assert second.inserted == 0 and second.updated == 20
    assert second.master_data_created == {}
    assert len(backend.records("employees")) == 20
    assert backend.create_calls == [("departments", "Ops")]


def test_one_create_per_distinct_reference(employees_schema, backend, make_csv):
    text = make_csv("code,name,department", *(f"E{i},P{i},Finance" for i in range(500)))
    report = _run(employees_schema, backend, text)
    assert report.succeeded == 500
    assert backend.create_calls == [("departments", "Finance")]
    ids = {r["department_id"] for r in backend.records("employees")}
    assert len(ids) == 1


def test_case_and_whitespace_variants_match_existing(employees_schema, backend, make_csv):
    backend.seed_reference("departments", "Human Resources", ref_id=7)
    text = make_csv(
        "code,name,department",
        "E1,A,human resources",
        "E2,B,  HUMAN RESOURCES ",
        "E3,C,Human Resources",
    )
    report = _run(employees_schema, backend, text)
    assert report.succeeded == 3
    assert backend.create_calls == []
    assert {r["department_id"] for r in backend.records("employees")} == {7}


def test_error_cites_physical_line(employees_schema, backend, make_csv):
    rows = [f"E{i},Person {i}" for i in range(100)]
    rows[4] = "E4,"
    report = _run(employees_schema, backend, make_csv("code,name", *rows))
    assert report.succeeded == 99
    assert report.error_lines() == ["Row 6: name is required"]


def test_failed_batch_retried_row_by_row(employees_schema, make_csv):
    backend = InMemoryBackend(
        fail_batches_over=1,
        reject_row=lambda row: "value too long" if row["code"] == "E42" else None,
    )
    text = make_csv("code,name", *(f"E{i},Person {i}" for i in range(250)))
    report = _run(employees_schema, backend, text, batch_size=250)
    assert report.succeeded == 249
    assert report.failed == 1
    assert report.error_lines() == ["Row 44: value too long"]
    assert backend.write_calls[0] == ("employees", Operation.INSERT, 250)


def test_repeated_new_reference_created_once(employees_schema, backend, make_csv):
    text = make_csv(
        "code,name,department",
        "E1,A,Engineering",
        "E2,B,engineering",
        "E3,C,Engineering ",
    )
    report = _run(employees_schema, backend, text)
    assert report.master_data_created == {"departments": 1}
    created = backend.references("departments")
    assert [e.name for e in created] == ["Engineering"]
    assert {r["department_id"] for r in backend.records("employees")} == {created[0].id}


def test_sub_department_gets_parent_from_same_file(employees_schema, backend, make_csv):
    backend.seed_reference("departments", "Ops", ref_id="d-ops")
    text = make_csv(
        "code,name,department,sub_department",
        "E1,A,Ops,Night Shift",
        "E2,B,Sales,Field",
    )
    report = _run(employees_schema, backend, text)
    assert report.master_data_created == {"departments": 1, "sub_departments": 2}
    subs = {e.name: e.id for e in backend.references("sub_departments")}
    sales = backend.references("departments")[1].id
    assert backend.parent_of("sub_departments", subs["Night Shift"]) == "d-ops"
    assert backend.parent_of("sub_departments", subs["Field"]) == sales


def test_duplicate_key_in_file_keeps_first(employees_schema, backend, make_csv):
    report = _run(employees_schema, backend, make_csv("code,name", "E1,First", "e1 ,Second"))
    assert report.succeeded == 1
    assert report.failed == 1
    assert report.error_details[0].row == 3
    assert "first seen on row 2" in report.error_details[0].message
    assert backend.records("employees")[0]["first_name"] == "First"


def test_reference_creation_failure_does_not_fail_row(employees_schema, make_csv):
    backend = InMemoryBackend(fail_create=["Ops"])
    report = _run(employees_schema, backend, make_csv("code,name,department", "E1,A,Ops"))
    assert report.succeeded == 1
    assert report.failed == 0
    assert report.error_lines() == ["Row 2: Failed to create Department 'Ops': rejected by backend"]
    assert backend.records("employees")[0]["department_id"] is None


def test_unknown_employee_reference_is_a_warning(assets_schema, backend, make_csv):
    text = make_csv(
        "asset_tag,asset_name,item_category,item,assigned_to",
        "A1,Laptop,IT,ThinkPad,E999",
    )
    report = _run(assets_schema, backend, text)
    assert report.succeeded == 1
    assert [str(w) for w in report.warnings] == ["Row 2: Employee 'E999' not found"]
    assert report.master_data_created == {"item_categories": 1, "items": 1}


def test_sim_card_composite_key_and_validation(sim_schema, backend, make_csv):
    backend.seed_record("sim_cards", {"id": "s-1", "sim_account_no": "100", "sim_service_no": "9"})
    text = make_csv(
        "sim_account_no,sim_service_no,sim_status,sim_serial_no",
        "100,9,Active,8966012345678901234",
        "100,10,lost,",
        "1.01E+02,11,,123",
    )
    report = _run(sim_schema, backend, text)
    assert report.updated == 1
    assert report.failed == 2
    assert report.error_lines() == [
        "Row 3: Invalid sim_status: lost. Must be one of: active, inactive, suspended, expired",
        "Row 4: Invalid serial number format",
    ]


def test_reimport_keeps_stored_values_behind_defaults(employees_schema, assets_schema, backend, make_csv):
    backend.seed_record("employees", {"code": "E1", "name": "Alice", "status": "inactive"})
    report = _run(employees_schema, backend, make_csv("code,name", "E1,Alice", "E2,Bob"))
    assert (report.inserted, report.updated) == (1, 1)
    rows = {r["code"]: r for r in backend.records("employees")}
    assert rows["E1"]["status"] == "inactive"
    assert rows["E2"]["status"] == "active"

    # an explicit value in the file still wins
    _run(employees_schema, backend, make_csv("code,name,status", "E1,Alice,Active"))
    assert {r["code"]: r for r in backend.records("employees")}["E1"]["status"] == "active"

    backend.seed_record("assets", {"asset_tag": "AT-1", "asset_name": "Laptop", "condition": "damaged"})
    _run(assets_schema, backend, make_csv(
        "asset_tag,asset_name,item_category,item", "AT-1,Laptop,Laptop,ThinkPad",
    ))
    assert backend.records("assets")[0]["condition"] == "damaged"
