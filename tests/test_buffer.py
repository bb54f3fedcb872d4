"""Tests for the EntryBuffer and its flush protocol."""

import asyncio
import json
import logging
import re

import pytest

import logpush.buffer as buffer_module
from logpush.buffer import EntryBuffer, slog_date
from logpush.models import LogLevel
from logpush.transport import TransportError


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

class RecordingTransport:
    """Collects every body it is asked to send; optionally fails."""

    def __init__(self, fail_with=None):
        self.bodies: list[dict] = []
        self.fail_with = fail_with

    async def send(self, body: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.bodies.append(json.loads(body))


class GatedTransport(RecordingTransport):
    """Blocks inside send() until released, to observe in-flight behavior."""

    def __init__(self):
        super().__init__()
        self.arm()

    def arm(self):
        """Replace the events, e.g. before reuse under a new event loop."""
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def send(self, body: bytes) -> None:
        self.started.set()
        await self.release.wait()
        await super().send(body)


def _messages(body: dict) -> list:
    return [entry["message"] for entry in body["entries"]]


# ------------------------------------------------------------------
# Appending
# ------------------------------------------------------------------

class TestAppend:
    """Queueing structured and console-style entries."""

    def test_new_buffer_is_empty(self):
        """A fresh buffer has nothing pending."""
        buf = EntryBuffer(RecordingTransport())
        assert buf.pending_count == 0
        assert buf.pending == ()

    def test_append_preserves_order(self):
        """Pending entries keep append order."""
        buf = EntryBuffer(RecordingTransport())
        for i in range(5):
            buf.append(LogLevel.INFO, f"log-{i}")

        assert [e.message for e in buf.pending] == [f"log-{i}" for i in range(5)]

    def test_append_normalizes_metadata(self):
        """Per-call metadata is normalized on append."""
        buf = EntryBuffer(RecordingTransport())
        buf.append(LogLevel.ERROR, "boom", {"code": 500, "empty": " ", "none": None})

        assert buf.pending[0].metadata == {"code": "500"}

    def test_append_without_metadata(self):
        """Entries without metadata store None."""
        buf = EntryBuffer(RecordingTransport())
        buf.append(LogLevel.INFO, "start")

        assert buf.pending[0].metadata is None

    def test_append_values_joins_serialized_args(self):
        """append_values serializes each value and joins them."""
        buf = EntryBuffer(RecordingTransport())
        buf.append_values(LogLevel.DEBUG, [True, 42, re.compile("a", re.I)])

        entry = buf.pending[0]
        assert entry.level is LogLevel.DEBUG
        assert entry.message == "true 42 '/a/i'"
        assert entry.metadata is None

    def test_static_meta_is_copied(self):
        """Static metadata is copied, not referenced."""
        static = {"env": "dev"}
        buf = EntryBuffer(RecordingTransport(), static)
        static["env"] = "prod"

        assert buf.static_meta == {"env": "dev"}


class TestMirror:
    """Best-effort diagnostic mirroring."""

    def test_entry_is_mirrored(self, caplog):
        """Each append writes one ``date LEVEL message`` line."""
        caplog.set_level(logging.DEBUG, logger="logpush.mirror")
        buf = EntryBuffer(RecordingTransport())
        buf.append(LogLevel.WARN, "disk almost full")

        messages = [r.getMessage() for r in caplog.records if r.name == "logpush.mirror"]
        assert len(messages) == 1
        assert re.fullmatch(r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} WARN disk almost full", messages[0])

    def test_mirror_failure_does_not_affect_append(self, monkeypatch):
        """A failing mirror sink never breaks append."""
        def broken(*args, **kwargs):
            raise RuntimeError("sink unavailable")

        monkeypatch.setattr(buffer_module.mirror_logger, "debug", broken)
        buf = EntryBuffer(RecordingTransport())
        buf.append(LogLevel.INFO, "still queued")

        assert buf.pending_count == 1

    def test_slog_date_format(self):
        """slog_date renders YYYY/MM/DD HH:MM:SS."""
        assert re.fullmatch(r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}", slog_date(1700000000000))


# ------------------------------------------------------------------
# Flushing
# ------------------------------------------------------------------

class TestFlush:
    """The snapshot, send and clear-on-success protocol."""

    @pytest.mark.asyncio
    async def test_empty_flush_makes_no_request(self):
        """Flushing an empty buffer sends nothing."""
        transport = RecordingTransport()
        buf = EntryBuffer(transport)

        await buf.flush()

        assert transport.bodies == []

    @pytest.mark.asyncio
    async def test_successful_flush_sends_payload_and_clears(self):
        """A successful flush sends the full payload and empties the buffer."""
        transport = RecordingTransport()
        buf = EntryBuffer(transport, {"env": "dev"})
        buf.append(LogLevel.INFO, "start")
        buf.append(LogLevel.ERROR, "boom", {"code": 500})

        await buf.flush()

        assert len(transport.bodies) == 1
        body = transport.bodies[0]
        assert body["meta"] == {"env": "dev"}
        assert [(e["level"], e["message"]) for e in body["entries"]] == [
            ("info", "start"),
            ("error", "boom"),
        ]
        assert "meta" not in body["entries"][0]
        assert body["entries"][1]["meta"] == {"code": "500"}
        assert all(isinstance(e["date"], int) for e in body["entries"])
        assert buf.pending_count == 0

    @pytest.mark.asyncio
    async def test_second_flush_is_noop(self):
        """Entries are not sent twice after success."""
        transport = RecordingTransport()
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "once")

        await buf.flush()
        await buf.flush()

        assert len(transport.bodies) == 1

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_entries(self):
        """A failed flush leaves pending entries exactly as they were."""
        transport = RecordingTransport(fail_with=TransportError("bad gateway", status_code=502))
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "a")
        buf.append(LogLevel.WARN, "b", {"k": "v"})
        before = buf.pending

        with pytest.raises(TransportError) as exc_info:
            await buf.flush()

        assert exc_info.value.detail == "bad gateway"
        assert buf.pending == before

    @pytest.mark.asyncio
    async def test_failed_entries_are_resubmitted(self):
        """Entries from a failed flush go out with the next one."""
        transport = RecordingTransport(fail_with=TransportError("down"))
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "first")

        with pytest.raises(TransportError):
            await buf.flush()

        buf.append(LogLevel.INFO, "second")
        transport.fail_with = None
        await buf.flush()

        assert _messages(transport.bodies[0]) == ["first", "second"]
        assert buf.pending_count == 0

    @pytest.mark.asyncio
    async def test_foreign_transport_errors_are_wrapped(self):
        """Non-TransportError failures surface as TransportError."""
        buf = EntryBuffer(RecordingTransport(fail_with=OSError("socket closed")))
        buf.append(LogLevel.INFO, "a")

        with pytest.raises(TransportError) as exc_info:
            await buf.flush()

        assert "socket closed" in exc_info.value.detail
        assert buf.pending_count == 1

    @pytest.mark.asyncio
    async def test_entries_appended_in_flight_stay_queued(self):
        """Entries appended during a request wait for the next flush."""
        transport = GatedTransport()
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "before")

        task = asyncio.create_task(buf.flush())
        await transport.started.wait()
        buf.append(LogLevel.INFO, "during")
        transport.release.set()
        await task

        assert _messages(transport.bodies[0]) == ["before"]
        assert [e.message for e in buf.pending] == ["during"]

    @pytest.mark.asyncio
    async def test_overlapping_flushes_do_not_resend(self):
        """A concurrent flush waits and sends only what is left."""
        transport = GatedTransport()
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "a")

        first = asyncio.create_task(buf.flush())
        await transport.started.wait()
        buf.append(LogLevel.INFO, "b")
        second = asyncio.create_task(buf.flush())
        transport.release.set()
        await asyncio.gather(first, second)

        assert [_messages(body) for body in transport.bodies] == [["a"], ["b"]]
        assert buf.pending_count == 0


    @pytest.mark.asyncio
    async def test_surrogate_text_is_escaped(self):
        """Lone surrogates in messages and metadata are escaped in the body."""
        transport = RecordingTransport()
        buf = EntryBuffer(transport)
        filename = b"caf\xff".decode("utf-8", "surrogateescape")
        buf.append_values(LogLevel.INFO, ["file", filename])
        buf.append(LogLevel.INFO, "ok", {"path": filename})

        await buf.flush()

        body = transport.bodies[0]
        assert _messages(body) == ["file caf\udcff", "ok"]
        assert body["entries"][1]["meta"] == {"path": "caf\udcff"}
        assert buf.pending_count == 0


class TestEventLoops:
    """Reusing one buffer under successive event loops."""

    def test_buffer_built_outside_loop_serves_several_loops(self):
        """Contended flushes work under each new asyncio.run loop."""
        transport = GatedTransport()
        buf = EntryBuffer(transport)

        async def contended_round(label):
            transport.arm()
            buf.append(LogLevel.INFO, label)
            first = asyncio.create_task(buf.flush())
            await transport.started.wait()
            buf.append(LogLevel.INFO, f"{label}-late")
            second = asyncio.create_task(buf.flush())
            await asyncio.sleep(0)
            transport.release.set()
            await asyncio.gather(first, second)

        asyncio.run(contended_round("one"))
        asyncio.run(contended_round("two"))

        assert [_messages(body) for body in transport.bodies] == [
            ["one"], ["one-late"], ["two"], ["two-late"],
        ]
        assert buf.pending_count == 0


class TestMetrics:
    """Flush metrics bookkeeping."""

    @pytest.mark.asyncio
    async def test_flush_updates_metrics(self):
        """A successful flush records batch, entries and bytes."""
        transport = RecordingTransport()
        buf = EntryBuffer(transport)
        buf.append(LogLevel.INFO, "a")
        buf.append(LogLevel.INFO, "b")
        await buf.flush()

        snap = buf.metrics.snapshot()
        assert snap["batches_sent"] == 1
        assert snap["entries_sent"] == 2
        assert snap["bytes_sent"] > 0

    @pytest.mark.asyncio
    async def test_failure_updates_metrics(self):
        """A failed flush counts as a failure, not a batch."""
        buf = EntryBuffer(RecordingTransport(fail_with=TransportError("nope")))
        buf.append(LogLevel.INFO, "a")

        with pytest.raises(TransportError):
            await buf.flush()

        snap = buf.metrics.snapshot()
        assert snap["failures"] == 1
        assert snap["batches_sent"] == 0
