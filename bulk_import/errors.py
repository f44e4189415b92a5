from __future__ import annotations

"""Exception taxonomy for the bulk import engine.

Only ``DecodeError`` aborts a run. Everything raised below the decoder stage is
caught at a stage boundary and recorded in the import report as data.
"""

__all__ = [
    "ImportEngineError",
    "DecodeError",
    "ReferenceCreationError",
    "BatchWriteError",
    "BackendError",
    "ProcessingError",
]


class ImportEngineError(Exception):
    """Base class for all engine errors."""


class DecodeError(ImportEngineError):
    """File is unreadable or not tabular. Fatal for the run."""


class ReferenceCreationError(ImportEngineError):
    """A backend refused to create one reference entity."""

    def __init__(self, kind: str, name: str, message: str) -> None:
        super().__init__(f"{kind} '{name}': {message}")
        self.kind = kind
        self.name = name
        self.message = message


class BatchWriteError(ImportEngineError):
    """A whole bulk write call failed; the executor falls back to single rows."""


class BackendError(ImportEngineError):
    """A backend read (reference or existence lookup) failed mid-run.

    The run stops at the current stage and reports the rows it never wrote.
    """


class ProcessingError(ImportEngineError):
    """Illegal use of a reconciliation run (e.g. re-entering a stage)."""
