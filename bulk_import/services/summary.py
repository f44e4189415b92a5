from __future__ import annotations

from ..models.processing_result import ImportReport

"""SUMMARY line rendering.

Format:
SUMMARY entity={entity} total={n} succeeded={n} failed={n} inserted={n}
updated={n} created_refs={n} elapsed_sec={x} throughput_rps={x}
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without a decimal part, small values without exponent notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(entity: str, report: ImportReport) -> str:
    """Render the single-line run summary.

    Examples:
        >>> r = ImportReport(entity="employees", total=3, succeeded=2, failed=1,
        ...                  inserted=2, elapsed_seconds=2.0)
        >>> render_summary_line("employees", r)
        'SUMMARY entity=employees total=3 succeeded=2 failed=1 inserted=2 updated=0 created_refs=0 elapsed_sec=2 throughput_rps=1'
    """
    return (
        f"SUMMARY entity={entity} "
        f"total={report.total} "
        f"succeeded={report.succeeded} "
        f"failed={report.failed} "
        f"inserted={report.inserted} "
        f"updated={report.updated} "
        f"created_refs={report.created_references} "
        f"elapsed_sec={format_number(report.elapsed_seconds)} "
        f"throughput_rps={format_number(report.throughput_rows_per_sec)}"
    )
