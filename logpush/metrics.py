"""Flush metrics — counters for delivered and failed batches."""

import time
from typing import Optional


class FlushMetrics:
    """Collects statistics about flush attempts made by an EntryBuffer."""

    def __init__(self) -> None:
        self._batches_sent: int = 0
        self._entries_sent: int = 0
        self._bytes_sent: int = 0
        self._failures: int = 0
        self._last_error: Optional[str] = None
        self._send_times: list[float] = []
        self._start_time = time.monotonic()

    def record_batch(self, batch_size: int, bytes_sent: int, send_time_ms: float) -> None:
        """Record a successfully delivered batch."""
        self._batches_sent += 1
        self._entries_sent += batch_size
        self._bytes_sent += bytes_sent
        self._send_times.append(send_time_ms)

    def record_failure(self, error: str) -> None:
        self._failures += 1
        self._last_error = error

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        send_times = self._send_times
        avg_send = sum(send_times) / len(send_times) if send_times else 0.0
        return {
            "batches_sent": self._batches_sent,
            "entries_sent": self._entries_sent,
            "bytes_sent": self._bytes_sent,
            "failures": self._failures,
            "last_error": self._last_error,
            "avg_send_time_ms": avg_send,
            "uptime_seconds": time.monotonic() - self._start_time,
        }
