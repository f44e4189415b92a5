from __future__ import annotations

from dataclasses import replace

from bulk_import.models.row_data import RawRow
from bulk_import.services.validator import validate
from bulk_import.tabular.normalizer import normalize


def _outcome(schema, **values):
    rec = normalize(RawRow(3, values), schema)
    return rec, validate(rec, schema)


def test_missing_required_name(employees_schema):
    _, outcome = _outcome(employees_schema, code="E2", name="")
    assert not outcome.is_valid
    assert outcome.errors == ("name is required",)
    assert outcome.line_number == 3


def test_multiple_errors_joined(assets_schema):
    _, outcome = _outcome(assets_schema, asset_tag="A1")
    assert outcome.message == "asset_name is required, item_category is required, item is required"


def test_invalid_email(employees_schema):
    _, outcome = _outcome(employees_schema, code="E1", name="A", email="not-an-email")
    assert outcome.errors == ('Invalid email format: "not-an-email"',)


def test_valid_email(employees_schema):
    _, outcome = _outcome(employees_schema, code="E1", name="A", email="a@b.co")
    assert outcome.is_valid


def test_bad_optional_date_is_warning_and_nulled(employees_schema):
    rec, outcome = _outcome(employees_schema, code="E1", name="A", joining_date="13/45/2020")
    assert outcome.is_valid
    assert outcome.warnings == ("Invalid joining_date '13/45/2020' ignored",)
    assert rec.values["joining_date"] is None
    assert rec.warnings == ["Invalid joining_date '13/45/2020' ignored"]


def test_sim_serial_pattern(sim_schema):
    _, outcome = _outcome(sim_schema, sim_account_no="1", sim_service_no="2", sim_serial_no="12345")
    assert outcome.errors == ("Invalid serial number format",)
    _, ok = _outcome(sim_schema, sim_account_no="1", sim_service_no="2", sim_serial_no="8.9966E+19")
    assert ok.is_valid


def test_sim_status_allowed_values(sim_schema):
    _, outcome = _outcome(sim_schema, sim_account_no="1", sim_service_no="2", sim_status="Lost")
    assert outcome.errors == (
        "Invalid sim_status: lost. Must be one of: active, inactive, suspended, expired",
    )


def test_bad_required_date_names_the_field(employees_schema):
    schema = replace(
        employees_schema,
        fields=tuple(
            replace(spec, required=True) if spec.name == "joining_date" else spec
            for spec in employees_schema.fields
        ),
    )
    rec, outcome = _outcome(schema, code="E1", name="A", joining_date="31/31/2024")
    assert outcome.errors == ("Invalid joining_date date format. Expected YYYY-MM-DD",)
    assert rec.warnings == []
