"""Thread-safe accumulation of broken-resource records."""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorRecord:
    """A resource that answered with an HTTP error, and the page referencing it."""

    page_url: str
    resource_url: str
    error_code: int

    def __post_init__(self) -> None:
        if not 400 <= self.error_code <= 599:
            raise ValueError(f"error_code must be an HTTP error status, got {self.error_code}")

    def as_row(self) -> tuple[str, str, int]:
        return (self.page_url, self.resource_url, self.error_code)


class ErrorCollector:
    """Append-only list of ErrorRecords shared by all workers."""

    def __init__(self):
        self._records: list[ErrorRecord] = []
        self._lock = threading.Lock()

    def record(self, record: ErrorRecord) -> None:
        with self._lock:
            self._records.append(record)

    def snapshot(self) -> tuple[ErrorRecord, ...]:
        """Point-in-time copy of the records, in append order."""
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
