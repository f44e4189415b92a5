"""Tabular input: delimited-text decoding and per-column normalization."""

from .decoder import decode, preview, read_workbook, tokenize_line
from .normalizer import descientify, is_sentinel, normalize, normalize_rows, parse_date, split_name

__all__ = [
    "decode",
    "preview",
    "read_workbook",
    "tokenize_line",
    "descientify",
    "is_sentinel",
    "normalize",
    "normalize_rows",
    "parse_date",
    "split_name",
]
