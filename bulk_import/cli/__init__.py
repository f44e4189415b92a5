"""Command-line front end (``bulk-import`` / ``python -m bulk_import.cli``)."""

from .__main__ import main

__all__ = [
    "main",
]
