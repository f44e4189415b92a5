from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from ..models.config_models import DEFAULT_NULL_SENTINELS
from ..models.import_record import ImportRecord, Unparseable
from ..models.row_data import RawRow
from ..models.schema_models import EntitySchema, FieldKind, FieldSpec

"""Field normalizer: RawRow -> ImportRecord.

Per-column cleanup driven by the entity schema:
- sentinel blanking (blank, N/A, '-' by default; compared trimmed, upper-cased)
- date coercion (D-Mon-YY, DD-Mon-YYYY, YYYY-MM-DD); anything else becomes an
  ``Unparseable`` marker so the validator can decide what to do with it
- exponent un-mangling for digit columns (8.31E+11 -> 831000000000)
- lower-casing of status-like enumerations
- full-name splitting at the first whitespace
"""

__all__ = [
    "is_sentinel",
    "parse_date",
    "descientify",
    "split_name",
    "normalize",
    "normalize_rows",
]

_MONTHS = {
    m: i
    for i, m in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_DMY_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SCI_RE = re.compile(r"^[+-]?\d+(\.\d+)?[eE][+-]?\d+$")


def is_sentinel(value: str | None, sentinels: Iterable[str] = DEFAULT_NULL_SENTINELS) -> bool:
    """True when ``value`` is logically absent (None, blank or a sentinel)."""
    if value is None:
        return True
    stripped = value.strip()
    if not stripped:
        return True
    return stripped.upper() in sentinels


def parse_date(value: str) -> date | None:
    """Parse ``D-Mon-YY``, ``DD-Mon-YYYY`` or ISO ``YYYY-MM-DD``.

    Two-digit years are read as 20YY. Returns None for anything else,
    including impossible calendar dates such as 31-Feb-24.
    """
    text = value.strip()
    try:
        m = _ISO_RE.match(text)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        m = _DMY_RE.match(text)
        if m:
            month = _MONTHS.get(m.group(2).lower())
            if month is None:
                return None
            year = int(m.group(3))
            if len(m.group(3)) == 2:
                year += 2000
            return date(year, month, int(m.group(1)))
    except ValueError:
        return None
    return None


def descientify(value: str) -> str:
    """Turn exponent notation rendered by spreadsheets back into digits.

    Values that are not in exponent notation, or that do not denote an
    integer, are returned unchanged.
    """
    text = value.strip()
    if not _SCI_RE.match(text):
        return text
    try:
        number = Decimal(text)
    except InvalidOperation:
        return text
    if number != number.to_integral_value():
        return text
    return str(int(number))


def split_name(full_name: str) -> tuple[str, str | None]:
    """Split at the first whitespace; the remainder (collapsed) is the last name."""
    parts = full_name.split()
    if not parts:
        return "", None
    first = parts[0]
    last = " ".join(parts[1:]) or None
    return first, last


def _coerce(spec: FieldSpec, text: str) -> Any:
    if spec.kind is FieldKind.DATE:
        parsed = parse_date(text)
        return parsed if parsed is not None else Unparseable(text)
    if spec.kind is FieldKind.NUMBER_TEXT:
        return descientify(text)
    if spec.kind is FieldKind.LOWER:
        return text.lower()
    return text


def normalize(
    row: RawRow,
    schema: EntitySchema,
    sentinels: Iterable[str] = DEFAULT_NULL_SENTINELS,
) -> ImportRecord:
    """Build the ImportRecord for one decoded row.

    Literal columns land in ``values``; reference columns keep their trimmed
    free-text name in ``references``. Absent values are ``None`` (or the
    field default when one is declared). Columns the schema does not know are
    dropped.
    """
    sentinel_set = frozenset(s.strip().upper() for s in sentinels)
    values: dict[str, Any] = {}
    references: dict[str, str | None] = {}
    defaulted: set[str] = set()
    for spec in schema.fields:
        raw = row.get(spec.name)
        if is_sentinel(raw, sentinel_set):
            value: Any = spec.default
            if value is not None:
                defaulted.add(spec.name)
        else:
            value = _coerce(spec, raw.strip())
        if schema.reference_spec(spec.name) is not None:
            references[spec.name] = value
        else:
            values[spec.name] = value

    split = schema.name_split
    if split is not None:
        full = values.get(split.source)
        if isinstance(full, str):
            values[split.first], values[split.last] = split_name(full)
        else:
            values[split.first] = values[split.last] = None

    return ImportRecord(
        line_number=row.line_number,
        entity=schema.name,
        values=values,
        references=references,
        defaulted=frozenset(defaulted),
    )


def normalize_rows(
    rows: Iterable[RawRow],
    schema: EntitySchema,
    sentinels: Iterable[str] = DEFAULT_NULL_SENTINELS,
) -> list[ImportRecord]:
    return [normalize(row, schema, sentinels) for row in rows]
