from __future__ import annotations

from bulk_import.models.processing_result import ErrorKind
from bulk_import.models.reconciled_row import Operation
from bulk_import.models.row_data import RawRow
from bulk_import.services.reconciler import find_duplicate_keys, load_existing_index, reconcile
from bulk_import.tabular.normalizer import normalize


def _records(schema, *rows):
    return [normalize(RawRow(i + 2, values), schema) for i, values in enumerate(rows)]


def test_duplicate_keys_first_occurrence_wins(employees_schema):
    records = _records(
        employees_schema,
        {"code": "E1", "name": "A"},
        {"code": "E2", "name": "B"},
        {"code": " e1 ", "name": "C"},
    )
    unique, errors = find_duplicate_keys(records, employees_schema)
    assert [r.line_number for r in unique] == [2, 3]
    assert len(errors) == 1
    assert errors[0].row == 4
    assert errors[0].kind is ErrorKind.DUPLICATE_KEY
    assert errors[0].message == "Duplicate code 'e1' found in import data (first seen on row 2)"


def test_composite_key_duplicates(sim_schema):
    records = _records(
        sim_schema,
        {"sim_account_no": "100", "sim_service_no": "1"},
        {"sim_account_no": "100", "sim_service_no": "2"},
        {"sim_account_no": "100", "sim_service_no": "1"},
    )
    unique, errors = find_duplicate_keys(records, sim_schema)
    assert len(unique) == 2
    assert errors[0].message.startswith("Duplicate sim_account_no + sim_service_no '100/1'")


def test_existing_index_single_lookup(backend, employees_schema):
    backend.seed_record("employees", {"id": "x1", "code": "E1"})
    records = _records(employees_schema, {"code": "e1", "name": "A"}, {"code": "E2", "name": "B"})
    index = load_existing_index(backend, employees_schema, records)
    assert index == {("e1",): "x1"}
    assert backend.existing_calls == [("employees", 2)]


def test_reconcile_tags_insert_and_update(backend, employees_schema):
    records = _records(employees_schema, {"code": "E1", "name": "A"}, {"code": "E2", "name": "B"})
    rows = reconcile(records, {("e1",): "x1"}, employees_schema)
    assert [(r.operation, r.target_id) for r in rows] == [(Operation.UPDATE, "x1"), (Operation.INSERT, None)]
    assert rows[1].natural_key == ("E2",)


def test_update_payload_leaves_defaulted_fields_out(backend, employees_schema):
    records = _records(
        employees_schema,
        {"code": "E1", "name": "A"},
        {"code": "E2", "name": "B", "status": "Inactive"},
    )
    rows = reconcile(records, {("e1",): "x1", ("e2",): "x2"}, employees_schema)
    assert "status" not in rows[0].payload(employees_schema, "x1")
    assert rows[1].payload(employees_schema, "x2")["status"] == "inactive"
    inserted = reconcile(records[:1], {}, employees_schema)[0]
    assert inserted.payload(employees_schema, "new")["status"] == "active"
