"""Pipeline stages and the run orchestrator."""

from .orchestrator import ReconciliationRun, import_file
from .summary import render_summary_line

__all__ = [
    "ReconciliationRun",
    "import_file",
    "render_summary_line",
]
