"""Domain models for the bulk import reconciliation engine.

This package contains the dataclasses passed between pipeline stages:
decoder rows, normalized records, reference sets, reconciled rows and the
final import report.
"""

from .import_record import ImportRecord, Unparseable, ValidationOutcome, normalize_key
from .processing_result import BatchStatsAccumulator, ErrorDetail, ErrorKind, ImportReport
from .reconciled_row import Operation, ReconciledRow
from .reference import CreationCandidate, ReferenceEntry, ReferenceSet, normalize_name
from .row_data import DecodeIssue, DecodeResult, RawRow
from .run_state import ProgressEvent, RunStage
from .schema_models import EntitySchema, FieldKind, FieldSpec, NameSplit, ReferenceFieldSpec

__all__ = [
    # Schema descriptors
    "EntitySchema",
    "FieldKind",
    "FieldSpec",
    "NameSplit",
    "ReferenceFieldSpec",
    # Pipeline models
    "RawRow",
    "DecodeIssue",
    "DecodeResult",
    "ImportRecord",
    "Unparseable",
    "ValidationOutcome",
    "normalize_key",
    "ReferenceEntry",
    "ReferenceSet",
    "CreationCandidate",
    "normalize_name",
    "Operation",
    "ReconciledRow",
    # Reporting
    "ErrorKind",
    "ErrorDetail",
    "ImportReport",
    "BatchStatsAccumulator",
    "ProgressEvent",
    "RunStage",
]
