from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..errors import DecodeError
from ..models.row_data import DecodeIssue, DecodeResult, RawRow
from ..models.schema_models import EntitySchema

"""Tabular decoder: delimited text -> ordered RawRows.

- The first non-blank line is the header; blank lines are discarded everywhere.
- Header names are trimmed, unquoted, lower-cased and mapped through the entity
  synonym table to canonical field names.
- Each data line is tokenized on its own. A line with an unterminated quote or a
  field count that disagrees with the header becomes a DecodeIssue and is kept
  out of downstream processing; the rest of the file still decodes.
- Line numbers are physical 1-based line numbers so messages match the
  spreadsheet row a user sees.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "tokenize_line",
    "decode",
    "read_workbook",
    "preview",
]

_LINE_SPLIT = re.compile(r"\r\n|\n|\r")


def tokenize_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one line into trimmed fields honoring double quotes.

    A doubled quote inside a quoted field is a literal quote. A quote that
    appears in the middle of an unquoted field is kept as-is.

    Hand-written rather than ``csv.reader`` or ``pandas.read_csv``: fed the
    whole file, both let an unterminated quote swallow the following lines,
    while here it only costs the line it appears on.

    Raises:
        ValueError: if a quoted field is never closed.
    """
    fields: list[str] = []
    buf: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and line[i + 1] == '"':
                    buf.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                buf.append(ch)
        elif ch == delimiter:
            fields.append("".join(buf))
            buf = []
        elif ch == '"' and not "".join(buf).strip():
            in_quotes = True
            buf = []
        else:
            buf.append(ch)
        i += 1
    if in_quotes:
        raise ValueError("unterminated quoted field")
    fields.append("".join(buf))
    return [f.strip() for f in fields]


def _to_text(data: bytes | str) -> str:
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeError(f"file is not valid UTF-8 text: {e}") from e
    return data.removeprefix("\ufeff")


def _canonical_header(raw: str, index: int, synonyms: dict[str, str]) -> str:
    name = raw.strip().strip('"').strip().lower()
    if not name:
        return f"column_{index + 1}"
    return synonyms.get(name, name)


def decode(
    data: bytes | str,
    schema: EntitySchema,
    expected_columns: Iterable[str] | None = None,
    delimiter: str = ",",
) -> DecodeResult:
    """Decode delimited text into RawRows keyed by canonical field name.

    Parameters
    ----------
    data: file contents (UTF-8 bytes, optional BOM, or already decoded text)
    schema: entity descriptor providing the header synonym table
    expected_columns: canonical columns that must be present in the header
    delimiter: field separator (comma by default)

    Raises
    ------
    DecodeError: the file is not text, has no header, no data lines, or lacks
        an expected column. Row-level problems never raise.
    """
    text = _to_text(data)
    numbered = [
        (number, line)
        for number, line in enumerate(_LINE_SPLIT.split(text), start=1)
        if line.strip()
    ]
    if not numbered:
        raise DecodeError("file is empty")

    header_line_no, header_line = numbered[0]
    try:
        raw_headers = tokenize_line(header_line, delimiter)
    except ValueError as e:
        raise DecodeError(f"header on line {header_line_no}: {e}") from e

    synonyms = schema.synonym_table()
    columns: list[str] = []
    keep: list[bool] = []
    for index, raw in enumerate(raw_headers):
        name = _canonical_header(raw, index, synonyms)
        if name in columns:
            logger.warning("duplicate column '%s' (header '%s') ignored", name, raw.strip())
            keep.append(False)
            continue
        columns.append(name)
        keep.append(True)

    if expected_columns is not None:
        missing = sorted(set(expected_columns) - set(columns))
        if missing:
            raise DecodeError(f"missing required columns: {', '.join(missing)}")

    known = {spec.name for spec in schema.fields}
    unknown = [c for c in columns if c not in known]
    if unknown:
        logger.debug("columns without a %s field are ignored: %s", schema.name, unknown)

    data_lines = numbered[1:]
    if not data_lines:
        raise DecodeError("file has a header but no data rows")

    rows: list[RawRow] = []
    issues: list[DecodeIssue] = []
    width = len(raw_headers)
    for line_no, line in data_lines:
        try:
            values = tokenize_line(line, delimiter)
        except ValueError as e:
            issues.append(DecodeIssue(line_no, str(e)))
            continue
        if len(values) != width:
            issues.append(DecodeIssue(line_no, f"expected {width} fields, found {len(values)}"))
            continue
        mapped = [v for v, k in zip(values, keep) if k]
        rows.append(RawRow(line_number=line_no, values=dict(zip(columns, mapped))))

    if issues:
        logger.warning("%d line(s) could not be decoded", len(issues))
    return DecodeResult(columns=columns, rows=rows, issues=issues, unknown_columns=unknown)


def _cell_text(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, datetime):
        if value.hour == value.minute == value.second == 0:
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return " ".join(str(value).splitlines())


def read_workbook(path: Path, sheet: str | int | None = None) -> str:
    """Read one sheet of an .xlsx workbook and render it as comma-separated text.

    The first row of the sheet must be the header. Cells are rendered as the
    text a user would have exported: dates as YYYY-MM-DD, integral numbers
    without a decimal part.
    """
    try:
        df = pd.read_excel(
            path,
            sheet_name=0 if sheet is None else sheet,
            header=None,
            keep_default_na=False,
        )
    except (OSError, ValueError) as e:
        raise DecodeError(f"cannot read workbook {path}: {e}") from e
    text_df = df.map(_cell_text)
    return text_df.to_csv(index=False, header=False, lineterminator="\n")


def preview(result: DecodeResult, rows: int = 5) -> pd.DataFrame:
    """First decoded rows as a DataFrame indexed by source line number."""
    sample = result.rows[:rows]
    frame = pd.DataFrame(
        [[row.values.get(c, "") for c in result.columns] for row in sample],
        columns=result.columns,
        index=[row.line_number for row in sample],
    )
    frame.index.name = "line"
    return frame
