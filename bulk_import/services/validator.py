from __future__ import annotations

import re
from collections.abc import Iterable

from ..models.import_record import ImportRecord, Unparseable, ValidationOutcome
from ..models.schema_models import EntitySchema, FieldKind, FieldSpec

"""Row validator: required-field and format rules.

Blocking errors (row excluded):
- required field absent            -> "<field> is required"
- required date unparseable        -> "Invalid <field> date format. Expected YYYY-MM-DD"
- email not shaped like a@b.c       -> 'Invalid email format: "<value>"'
- pattern mismatch                 -> pattern_message or "Invalid <field> format"
- value outside allowed_values     -> "Invalid <field>: <value>. Must be one of: ..."

Non-blocking warnings (value nulled, row proceeds):
- optional date unparseable
"""

__all__ = [
    "EMAIL_RE",
    "validate",
    "validate_all",
]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _check_format(spec: FieldSpec, value: object) -> str | None:
    if not isinstance(value, str):
        return None
    if spec.kind is FieldKind.EMAIL and not EMAIL_RE.match(value):
        return f'Invalid email format: "{value}"'
    if spec.pattern is not None and not re.fullmatch(spec.pattern, value):
        return spec.pattern_message or f"Invalid {spec.name} format"
    if spec.allowed_values is not None and value not in spec.allowed_values:
        return f"Invalid {spec.name}: {value}. Must be one of: {', '.join(spec.allowed_values)}"
    return None


def validate(record: ImportRecord, schema: EntitySchema) -> ValidationOutcome:
    """Check one record; unparseable optional dates are nulled on the record."""
    errors: list[str] = []
    warnings: list[str] = []
    for spec in schema.fields:
        value = record.get(spec.name)
        if isinstance(value, Unparseable):
            if spec.required:
                errors.append(f"Invalid {spec.name} date format. Expected YYYY-MM-DD")
            else:
                warnings.append(f"Invalid {spec.name} '{value.raw}' ignored")
                record.values[spec.name] = None
            continue
        if value is None:
            if spec.required:
                errors.append(f"{spec.name} is required")
            continue
        message = _check_format(spec, value)
        if message is not None:
            errors.append(message)
    record.warnings.extend(warnings)
    return ValidationOutcome(record.line_number, tuple(errors), tuple(warnings))


def validate_all(
    records: Iterable[ImportRecord], schema: EntitySchema
) -> list[tuple[ImportRecord, ValidationOutcome]]:
    """One outcome per record, in input order."""
    return [(record, validate(record, schema)) for record in records]
