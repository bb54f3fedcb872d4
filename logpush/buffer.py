"""Entry buffer — queues log entries in memory and ships them on flush."""

import asyncio
import json
import logging
import time
from typing import Any, Iterable, Mapping, Optional

from logpush.metadata import normalize_metadata
from logpush.metrics import FlushMetrics
from logpush.models import LogEntry, LogLevel, build_payload, create_log_entry
from logpush.serializer import stringify_arg_list
from logpush.transport import TransportError

logger = logging.getLogger(__name__)
mirror_logger = logging.getLogger("logpush.mirror")


def slog_date(timestamp_ms: int) -> str:
    """Local time as ``YYYY/MM/DD HH:MM:SS``."""
    return time.strftime("%Y/%m/%d %H:%M:%S", time.localtime(timestamp_ms / 1000))


class EntryBuffer:
    """Ordered in-memory queue of log entries with static metadata.

    Appends are synchronous and never raise. ``flush`` snapshots the queue,
    sends it as one JSON document through *transport* and, on success,
    drops exactly the snapshotted entries. Entries appended while a request
    is in flight stay queued for the next flush. Flushes are serialized by
    an internal lock, so two overlapping calls never submit the same entry.
    """

    def __init__(self, transport, static_meta: Optional[Mapping[str, str]] = None):
        self._transport = transport
        self._static_meta = dict(static_meta or {})
        self._entries: list[LogEntry] = []
        self._flush_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._metrics = FlushMetrics()

    # Public API

    def append(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Queue one structured entry and mirror it to the diagnostic log."""
        entry = create_log_entry(level, message, normalize_metadata(metadata))
        self._entries.append(entry)
        self._mirror(entry)

    def append_values(self, level: LogLevel, values: Iterable[Any]) -> None:
        """Queue one console-style entry built from heterogeneous values."""
        self.append(level, stringify_arg_list(values))

    async def flush(self) -> None:
        """Ship all pending entries in a single request.

        No request is made when nothing is pending. Raises TransportError
        when the request fails; the queue is then left untouched.
        """
        # asyncio locks bind to one loop; start a fresh one per running loop
        loop = asyncio.get_running_loop()
        if self._flush_lock is None or self._lock_loop is not loop:
            self._flush_lock = asyncio.Lock()
            self._lock_loop = loop

        async with self._flush_lock:
            if not self._entries:
                return

            snapshot = list(self._entries)
            body = json.dumps(
                build_payload(self._static_meta, snapshot)
            ).encode("ascii")

            start = time.monotonic()
            try:
                await self._transport.send(body)
            except Exception as exc:
                self._metrics.record_failure(str(exc))
                logger.warning("Flush of %d entries failed, keeping them queued", len(snapshot))
                if isinstance(exc, TransportError):
                    raise
                raise TransportError(str(exc)) from exc

            # Only this flush removes entries and flushes are serialized,
            # so the snapshot is still the head of the queue.
            del self._entries[: len(snapshot)]
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_batch(len(snapshot), len(body), elapsed_ms)
            logger.debug("Flushed batch of %d entries (%d bytes)", len(snapshot), len(body))

    @property
    def static_meta(self) -> dict:
        return dict(self._static_meta)

    @property
    def pending(self) -> tuple:
        """Entries currently waiting to be flushed, oldest first."""
        return tuple(self._entries)

    @property
    def pending_count(self) -> int:
        return len(self._entries)

    @property
    def metrics(self) -> FlushMetrics:
        return self._metrics

    # Internal helpers

    @staticmethod
    def _mirror(entry: LogEntry) -> None:
        try:
            line = f"{slog_date(entry.timestamp)} {entry.level.value.upper()} {entry.message}"
            if entry.metadata:
                mirror_logger.debug("%s %s", line, entry.metadata)
            else:
                mirror_logger.debug("%s", line)
        except Exception:
            pass
