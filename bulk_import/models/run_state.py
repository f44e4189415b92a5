from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Run lifecycle enum and progress snapshot for a reconciliation run.

State transitions (never re-entered):
    idle -> decoding -> validating -> resolving -> materializing
         -> reconciling -> executing -> reported

A fatal decode failure jumps straight to ``reported``.
"""

__all__ = [
    "RunStage",
    "ProgressEvent",
]


class RunStage(Enum):
    IDLE = "idle"
    DECODING = "decoding"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    MATERIALIZING = "materializing"
    RECONCILING = "reconciling"
    EXECUTING = "executing"
    REPORTED = "reported"

    @property
    def order(self) -> int:
        return list(RunStage).index(self)


@dataclass(frozen=True)
class ProgressEvent:
    """Incremental progress pushed to the caller's callback."""
    stage: RunStage
    percent: float  # 0..100
    message: str
    batch: int = 0
    total_batches: int = 0
