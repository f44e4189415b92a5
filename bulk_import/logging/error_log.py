from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..models.processing_result import ImportReport

"""Error log buffering.

- JSON Lines with a fixed key set (no extra keys)
- one ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC) per process, created lazily on
  the first flush that has something to write
- records are buffered and appended in one go on ``flush()``
- one record per report error detail; warnings are not logged
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    The file path is fixed on first access. ``append`` may be called from
    executor worker threads.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        with self._lock:
            self._records.append(record)

    def add_report(self, report: ImportReport, file_name: str) -> int:
        """Buffer one record per error detail of ``report``; returns the count."""
        records = [ErrorRecord.from_detail(file_name, report.entity, d) for d in report.error_details]
        with self._lock:
            self._records.extend(records)
        return len(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None if nothing was written."""
        with self._lock:
            if not self._records:
                return None
            fp = self.file_path
            fp.parent.mkdir(parents=True, exist_ok=True)
            with fp.open("a", encoding="utf-8") as f:
                for r in self._records:
                    f.write(r.to_json_line() + "\n")
            self._records.clear()
            return fp
