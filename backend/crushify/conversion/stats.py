"""Running conversion counters."""
import threading
import time
from dataclasses import replace

from crushify.conversion.models import Statistics


class StatisticsTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self._stats = Statistics()

    def record_processed(self, saved_bytes: int) -> None:
        with self._lock:
            self._stats = replace(
                self._stats,
                processed=self._stats.processed + 1,
                total_saved_bytes=self._stats.total_saved_bytes + saved_bytes,
            )

    def record_failed(self) -> None:
        with self._lock:
            self._stats = replace(self._stats, failed=self._stats.failed + 1)

    def record_skipped(self) -> None:
        with self._lock:
            self._stats = replace(self._stats, skipped=self._stats.skipped + 1)

    def mark_started(self) -> None:
        # A new run clears the previous end mark so processing_time covers this run only
        with self._lock:
            self._stats = replace(self._stats, start_time=time.time(), end_time=None)

    def mark_completed(self) -> None:
        with self._lock:
            self._stats = replace(self._stats, end_time=time.time())

    def snapshot(self) -> Statistics:
        with self._lock:
            return self._stats

    def reset(self) -> None:
        with self._lock:
            self._stats = Statistics()
