"""Tests for progress events and the emitter."""

import orjson
import pytest

from grantwatch.core.models import GrantRecord
from grantwatch.core.orchestrator import (
    ConsumerDisconnected,
    EventKind,
    ProgressEmitter,
    ProgressEvent,
    encode_event,
)


class TestProgressEmitter:
    """Tests for ProgressEmitter delivery."""

    @pytest.mark.asyncio
    async def test_no_callback_is_noop(self):
        """Test emitting without a consumer does nothing."""
        emitter = ProgressEmitter()
        await emitter.phase("login", "Logging in...")
        assert not emitter.cancelled

    @pytest.mark.asyncio
    async def test_sync_and_async_callbacks(self):
        """Test both plain and coroutine callbacks receive events."""
        seen = []

        async def collect(event):
            seen.append(event)

        await ProgressEmitter(seen.append).phase("login", "a")
        await ProgressEmitter(collect).phase("searching", "b")

        assert [event.payload["phase"] for event in seen] == ["login", "searching"]

    @pytest.mark.asyncio
    async def test_disconnect_stops_delivery(self):
        """Test no callback runs after the consumer disconnects."""
        seen = []

        def callback(event):
            seen.append(event)
            if len(seen) == 2:
                raise ConsumerDisconnected()

        emitter = ProgressEmitter(callback)
        for index in range(5):
            await emitter.page(index + 1, 2, 2 * (index + 1))

        assert len(seen) == 2
        assert emitter.cancelled

    @pytest.mark.asyncio
    async def test_connection_error_disconnects(self):
        """Test a broken pipe counts as a disconnect."""

        def callback(event):
            raise BrokenPipeError()

        emitter = ProgressEmitter(callback)
        await emitter.phase("login", "a")
        assert emitter.closed

    @pytest.mark.asyncio
    async def test_other_callback_errors_propagate(self):
        """Test unrelated callback bugs are not swallowed."""

        def callback(event):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await ProgressEmitter(callback).phase("login", "a")

    @pytest.mark.asyncio
    async def test_explicit_disconnect(self):
        """Test disconnect() closes the emitter."""
        seen = []
        emitter = ProgressEmitter(seen.append)
        emitter.disconnect()
        await emitter.phase("login", "a")
        assert seen == []
        assert emitter.cancelled


class TestEventPayloads:
    """Tests for event builders."""

    @pytest.mark.asyncio
    async def test_progress_payload(self):
        """Test progress carries a rounded percentage and a title preview."""
        seen = []
        emitter = ProgressEmitter(seen.append, title_preview=5)
        await emitter.progress(1, 8, "A very long grant title")

        assert seen[0].kind is EventKind.PROGRESS
        assert seen[0].payload == {
            "phase": "enriching",
            "current": 1,
            "total": 8,
            "title": "A ver",
            "percentage": 13,
        }

    @pytest.mark.asyncio
    async def test_percentage_rounds_half_up(self):
        """Test halves round up."""
        seen = []
        emitter = ProgressEmitter(seen.append)
        await emitter.progress(1, 200, "x")
        assert seen[0].payload["percentage"] == 1

    @pytest.mark.asyncio
    async def test_page_payload(self):
        """Test page info is included only when known."""
        seen = []
        emitter = ProgressEmitter(seen.append)
        await emitter.page(1, 2, 2, {"current": 1, "total": 3})
        await emitter.page(2, 2, 4)

        assert seen[0].payload == {"page": 1, "found": 2, "totalSoFar": 2, "pageInfo": {"current": 1, "total": 3}}
        assert seen[1].payload == {"page": 2, "found": 2, "totalSoFar": 4}

    @pytest.mark.asyncio
    async def test_record_payload(self):
        """Test record events carry the record wire shape."""
        seen = []
        record = GrantRecord(title="T", link="https://x.org/1", description="D")
        await ProgressEmitter(seen.append).record(record)

        assert seen[0].kind is EventKind.RECORD
        assert seen[0].payload["description"] == "D"

    def test_encode_event(self):
        """Test wire events encode to a single JSON line."""
        wire = ProgressEvent(EventKind.PHASE, {"phase": "login", "message": "Logging in\n..."}).to_wire()
        line = encode_event(wire)

        assert "\n" not in line
        assert orjson.loads(line) == {"event": "phase", "data": {"phase": "login", "message": "Logging in\n..."}}
