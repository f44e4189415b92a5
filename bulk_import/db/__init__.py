"""Backends implementing the lookup / create / existence / bulk-write capabilities."""

from .memory import InMemoryBackend
from .protocol import Backend, BulkWriteResult, ExistingRecord

__all__ = [
    "Backend",
    "BulkWriteResult",
    "ExistingRecord",
    "InMemoryBackend",
]
