"""
Duplicate suppression window.
Remembers recently processed dedup ids so redelivered messages are not acted on twice.
"""

import threading
import time
from typing import Callable, Dict

from loguru import logger


class DedupWindow:
    """
    Time-bounded set of recently seen dedup ids.

    Queue-level deduplication only suppresses duplicate *sends*. When a worker
    publishes its output and crashes before deleting the source message, the
    message is redelivered; this window lets the worker recognise it.
    """

    def __init__(
        self,
        window_seconds: float = 3600.0,
        cleanup_interval: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize dedup window.

        Args:
            window_seconds: How long a dedup id is remembered
            cleanup_interval: How often to purge expired entries (seconds)
            clock: Monotonic time source
        """
        self.window_seconds = window_seconds
        self._clock = clock
        self._seen: Dict[str, float] = {}
        self._lock = threading.Lock()

        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def seen_recently(self, dedup_id: str) -> bool:
        """
        Check whether a dedup id was marked within the window.

        Args:
            dedup_id: Content-derived message id

        Returns:
            True if the id is still inside the window
        """
        now = self._clock()
        with self._lock:
            marked_at = self._seen.get(dedup_id)
            if marked_at is None:
                return False
            if now - marked_at >= self.window_seconds:
                del self._seen[dedup_id]
                return False

        logger.debug(f"Dedup id {dedup_id[:12]}... seen {now - marked_at:.0f}s ago")
        return True

    def mark(self, dedup_id: str):
        """Record a dedup id as processed now."""
        now = self._clock()
        with self._lock:
            self._seen[dedup_id] = now
            if now - self._last_cleanup > self._cleanup_interval:
                self._cleanup_expired(now)

    def _cleanup_expired(self, now: float):
        """Drop expired entries. Caller holds the lock."""
        count_before = len(self._seen)
        self._seen = {
            key: marked_at
            for key, marked_at in self._seen.items()
            if now - marked_at < self.window_seconds
        }
        removed = count_before - len(self._seen)
        if removed > 0:
            logger.info(f"Dedup window cleanup: removed {removed} expired entries, {len(self._seen)} remaining")
        self._last_cleanup = now

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self):
        """Forget every entry (for testing)."""
        with self._lock:
            self._seen.clear()
