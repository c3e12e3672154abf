"""
Run statistics for vault generation.

All updates happen on the event loop thread with no ``await`` between
read and write, so increments are never lost.
"""

import time
from dataclasses import dataclass, field
from typing import NamedTuple


class ProgressSnapshot(NamedTuple):
    processed: int
    total: int
    failed: int


@dataclass
class RunStats:
    """Counters for one generation run."""

    total: int = 0
    processed: int = 0
    succeeded: int = 0
    introspection_failures: int = 0
    save_failures: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def failed(self) -> int:
        return self.introspection_failures + self.save_failures

    def record_success(self) -> None:
        self.succeeded += 1
        self.processed += 1

    def record_introspection_failure(self) -> None:
        self.introspection_failures += 1
        self.processed += 1

    def record_save_failure(self) -> None:
        self.save_failures += 1
        self.processed += 1

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(self.processed, self.total, self.failed)

    def summary(self) -> str:
        """Get human-readable statistics summary."""
        elapsed = time.time() - self.start_time
        rate = self.processed / elapsed if elapsed > 0 else 0
        return (
            f"Processed: {self.processed}/{self.total} | Failed: {self.failed} | "
            f"Rate: {rate:.1f} pkg/s | Elapsed: {elapsed:.0f}s"
        )
