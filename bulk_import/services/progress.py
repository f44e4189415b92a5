from __future__ import annotations

import logging
import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.run_state import ProgressEvent, RunStage

"""Progress display with tqdm (TTY only).

``ProgressTracker`` is a ProgressEvent callback for the CLI: stage changes go to
the log at DEBUG level, executor batches drive a single tqdm bar. In non-TTY
environments (CI, redirected output) the bar is disabled to avoid ANSI control
sequence spam.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]

logger = logging.getLogger(__name__)


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Batch progress bar fed by ProgressEvents."""

    def __init__(self, *, description: str = "Writing batches") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        self.last_event: ProgressEvent | None = None
        self.batches_done = 0

    def _ensure_bar(self, total_batches: int) -> None:
        if self.enabled and self.pbar is None:
            self.pbar = tqdm(
                total=total_batches,
                desc=self.description,
                unit="batch",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def __call__(self, event: ProgressEvent) -> None:
        previous = self.last_event
        self.last_event = event
        if previous is None or previous.stage is not event.stage:
            logger.debug("stage=%s %s", event.stage.value, event.message)
        if event.stage is not RunStage.EXECUTING or event.total_batches == 0:
            return
        self._ensure_bar(event.total_batches)
        advance = event.batch - self.batches_done
        if advance > 0:
            self.batches_done = event.batch
            if self.pbar is not None:
                self.pbar.update(advance)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
