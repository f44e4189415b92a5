from __future__ import annotations

from dataclasses import dataclass

"""Decoder output models.

RawRow represents a single data line after tokenizing and header mapping. The
line_number is the 1-based physical line in the source file so that messages
match spreadsheet row numbering (header on line 1 -> first data row is 2).
"""

__all__ = [
    "RawRow",
    "DecodeIssue",
    "DecodeResult",
]


@dataclass(frozen=True)
class RawRow:
    """Ordered mapping from canonical (lower-cased) header to raw string value."""
    line_number: int
    values: dict[str, str]

    def get(self, column: str) -> str | None:
        return self.values.get(column)


@dataclass(frozen=True)
class DecodeIssue:
    """A data line that could not be turned into a RawRow."""
    line_number: int
    message: str


@dataclass(frozen=True)
class DecodeResult:
    """Everything the decoder learned about one file."""
    columns: list[str]  # canonical header names in file order
    rows: list[RawRow]
    issues: list[DecodeIssue]
    unknown_columns: list[str]  # headers with no schema field

    @property
    def total_rows(self) -> int:
        """Data lines seen, whether decoded or rejected."""
        return len(self.rows) + len(self.issues)
