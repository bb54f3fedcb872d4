"""Log entry model and flush payload shape."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LogLevel(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    LOG = "log"
    TRACE = "trace"


@dataclass(frozen=True)
class LogEntry:
    timestamp: int
    level: LogLevel
    message: str
    metadata: Optional[dict] = None


def now_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def create_log_entry(
    level: LogLevel,
    message: str,
    metadata: Optional[dict] = None,
) -> LogEntry:
    """Factory function that creates a LogEntry stamped with the current time."""
    return LogEntry(
        timestamp=now_millis(),
        level=LogLevel(level),
        message=message,
        metadata=dict(metadata) if metadata else None,
    )


def entry_to_dict(entry: LogEntry) -> dict:
    """Convert a LogEntry to its wire dictionary. ``meta`` is omitted when empty."""
    data = {
        "date": entry.timestamp,
        "level": entry.level.value,
        "message": entry.message,
    }
    if entry.metadata:
        data["meta"] = dict(entry.metadata)
    return data


def build_payload(static_meta: dict, entries) -> dict:
    """Build the body of one flush request from a snapshot of entries."""
    return {
        "meta": dict(static_meta),
        "entries": [entry_to_dict(entry) for entry in entries],
    }
