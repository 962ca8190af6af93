"""Integration tests for full scrape runs against the in-memory portal."""

import asyncio

import pytest

from grantwatch.core.config import AppConfig
from grantwatch.core.errors import AuthenticationError, ConfigurationError
from grantwatch.core.models import ScrapeOptions
from grantwatch.core.orchestrator import (
    ConsumerDisconnected,
    EventKind,
    ScrapeRunner,
    run_scrape,
    run_scrape_streaming,
    stream_scrape,
)

from conftest import BASE_URL, FakePortalSession


def phases(events):
    return [event.payload["phase"] for event in events if event.kind is EventKind.PHASE]


async def collect(stream):
    return [event async for event in stream]


class TestRunScrape:
    """Tests for blocking scrape runs."""

    @pytest.mark.asyncio
    async def test_listing_only(self, app_config, fake_session, session_factory):
        """Test three pages of two records without enrichment."""
        result = await run_scrape(app_config, ScrapeOptions(enrich=False), session_factory=session_factory)

        assert result.total_found == 6
        assert [record.title for record in result.records] == [f"Grant {n}" for n in range(1, 7)]
        assert not any(record.is_enriched for record in result.records)
        assert result.enriched is False
        assert result.cancelled is False
        assert result.filters_used["status"] == ["Open for Applications", "Future"]
        assert fake_session.detail_visits == []
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_applies_filters(self, app_config, fake_session, session_factory):
        """Test the filters present on the search form are ticked."""
        await run_scrape(app_config, session_factory=session_factory)
        assert fake_session.checked == ["Open for Applications", "Community"]

    @pytest.mark.asyncio
    async def test_with_enrichment(self, app_config, session_factory, fake_session):
        """Test enrichment fills detail fields and a 404 keeps the listing record."""
        del fake_session.detail_pages[f"{BASE_URL}/Scheme/View/3"]

        result = await run_scrape(app_config, ScrapeOptions(enrich=True), session_factory=session_factory)

        assert result.total_found == 6
        assert result.enriched is True
        assert [record.is_enriched for record in result.records] == [True, True, False, True, True, True]
        assert result.records[2].funder == "Funder 3"
        assert result.records[0].description == "Supports local projects & groups."
        assert len(fake_session.detail_visits) == 6

    @pytest.mark.asyncio
    async def test_result_wire_shape(self, app_config, session_factory):
        """Test the result serializes with camelCase keys."""
        result = await run_scrape(app_config, session_factory=session_factory)
        data = result.to_dict()

        assert data["totalFound"] == 6
        assert set(data) == {"records", "totalFound", "filtersUsed", "timestamp", "durationMs", "enriched", "cancelled"}
        assert data["timestamp"].endswith("Z")
        assert data["records"][0]["link"] == f"{BASE_URL}/Scheme/View/1"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, session_factory):
        """Test missing credentials fail before any session is created."""
        config = AppConfig()

        with pytest.raises(ConfigurationError, match="IDOX_USERNAME and IDOX_PASSWORD"):
            await run_scrape(config, session_factory=session_factory)

        assert session_factory.calls == 0

    @pytest.mark.asyncio
    async def test_login_failure_closes_session(self, app_config, credentials):
        """Test the session is closed when login fails."""
        session = FakePortalSession()
        config = app_config.model_copy(
            update={"credentials": credentials.model_copy(update={"username": "wrong@example.org"})}
        )

        with pytest.raises(AuthenticationError):
            await run_scrape(config, session_factory=lambda _: session)

        assert session.entered and session.closed

    @pytest.mark.asyncio
    async def test_browser_failure_mid_walk_keeps_records(self, app_config):
        """Test a page read failure on page 2 still returns page 1."""
        session = FakePortalSession(content_error_page=2)
        runner = ScrapeRunner(app_config, session_factory=lambda _: session)

        result = await runner.run(ScrapeOptions(enrich=False))

        assert [record.title for record in result.records] == ["Grant 1", "Grant 2"]
        assert runner.stats.walk_reason == "read_failed"
        assert session.closed

    @pytest.mark.asyncio
    async def test_runner_stats(self, app_config, session_factory):
        """Test the runner records how the walk ended."""
        runner = ScrapeRunner(app_config, session_factory=session_factory)
        await runner.run(ScrapeOptions(enrich=True))

        assert runner.stats.pages_walked == 3
        assert runner.stats.records_enriched == 6
        assert runner.stats.walk_reason == "no_next_page"
        assert runner.stats.duration_seconds is not None


class TestRunScrapeStreaming:
    """Tests for scrape runs with a progress consumer."""

    @pytest.mark.asyncio
    async def test_event_order(self, app_config, session_factory):
        """Test phases, pages, progress and records arrive in run order."""
        events = []
        await run_scrape_streaming(app_config, ScrapeOptions(enrich=True), events.append, session_factory=session_factory)

        assert phases(events) == ["launching", "login", "searching", "extracting", "extracted", "enriching_start"]
        kinds = [event.kind for event in events]
        assert kinds.count(EventKind.PAGE) == 3
        assert kinds[-12:] == [EventKind.PROGRESS, EventKind.RECORD] * 6

        extracted = next(e for e in events if e.kind is EventKind.PHASE and e.payload["phase"] == "extracted")
        assert extracted.payload["recordsFound"] == 6
        start = next(e for e in events if e.kind is EventKind.PHASE and e.payload["phase"] == "enriching_start")
        assert start.payload["totalRecords"] == 6

    @pytest.mark.asyncio
    async def test_no_enrichment_events_without_enrich(self, app_config, session_factory):
        """Test a listing-only run ends at the extracted phase."""
        events = []
        await run_scrape_streaming(app_config, ScrapeOptions(), events.append, session_factory=session_factory)

        assert phases(events)[-1] == "extracted"
        assert not any(event.kind in (EventKind.PROGRESS, EventKind.RECORD) for event in events)

    @pytest.mark.asyncio
    async def test_async_callback(self, app_config, session_factory):
        """Test coroutine callbacks are awaited."""
        events = []

        async def on_progress(event):
            await asyncio.sleep(0)
            events.append(event)

        await run_scrape_streaming(app_config, None, on_progress, session_factory=session_factory)
        assert phases(events)[0] == "launching"

    @pytest.mark.asyncio
    async def test_disconnect_during_enrichment(self, app_config, fake_session, session_factory):
        """Test no events follow a disconnect and remaining records stay as listed."""
        events = []

        def on_progress(event):
            events.append(event)
            if sum(1 for e in events if e.kind is EventKind.PROGRESS) == 2:
                raise ConsumerDisconnected()

        result = await run_scrape_streaming(
            app_config, ScrapeOptions(enrich=True), on_progress, session_factory=session_factory
        )

        assert events[-1].kind is EventKind.PROGRESS
        assert events[-1].payload["current"] == 2
        assert result.cancelled is True
        assert result.total_found == 6
        assert [record.is_enriched for record in result.records] == [True, True, False, False, False, False]
        assert len(fake_session.detail_visits) == 2
        assert fake_session.closed


class TestStreamScrape:
    """Tests for the streaming adapter."""

    @pytest.mark.asyncio
    async def test_ends_with_complete(self, app_config, session_factory):
        """Test a successful run ends with exactly one complete event."""
        events = await collect(stream_scrape(app_config, ScrapeOptions(), session_factory=session_factory))

        assert events[0] == {"event": "phase", "data": {"phase": "launching", "message": "Launching browser..."}}
        assert [e["event"] for e in events].count("complete") == 1
        assert events[-1]["event"] == "complete"
        assert events[-1]["data"]["totalFound"] == 6
        assert not any(e["event"] == "error" for e in events)

    @pytest.mark.asyncio
    async def test_configuration_error(self, session_factory):
        """Test missing credentials produce a single error event."""
        events = await collect(stream_scrape(AppConfig(), session_factory=session_factory))

        assert events == [
            {
                "event": "error",
                "data": {
                    "errorKind": "ConfigurationError",
                    "message": "IDOX_USERNAME and IDOX_PASSWORD environment variables required",
                },
            }
        ]
        assert session_factory.calls == 0

    @pytest.mark.asyncio
    async def test_authentication_error(self, app_config, credentials):
        """Test a failed login ends the stream with its error kind."""
        config = app_config.model_copy(
            update={"credentials": credentials.model_copy(update={"username": "wrong@example.org"})}
        )
        events = await collect(stream_scrape(config, session_factory=lambda _: FakePortalSession()))

        assert events[-1]["event"] == "error"
        assert events[-1]["data"]["errorKind"] == "AuthenticationError"
        assert events[-1]["data"]["message"] == "Login failed. Error: Invalid login attempt"

    @pytest.mark.asyncio
    async def test_browser_failure_mid_walk_completes(self, app_config):
        """Test a page read failure ends the stream with complete, not error."""
        session = FakePortalSession(content_error_page=2)

        events = await collect(stream_scrape(app_config, session_factory=lambda _: session))

        assert not any(e["event"] == "error" for e in events)
        assert events[-1]["event"] == "complete"
        assert events[-1]["data"]["totalFound"] == 2

    @pytest.mark.asyncio
    async def test_portal_load_failure_kind(self, app_config):
        """Test a browser failure loading the portal is reported as NavigationTimeoutError."""
        events = await collect(stream_scrape(app_config, session_factory=lambda _: FakePortalSession(goto_error=True)))

        assert events[-1]["event"] == "error"
        assert events[-1]["data"]["errorKind"] == "NavigationTimeoutError"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, app_config):
        """Test unexpected failures surface as InternalError."""

        def broken_factory(config):
            raise RuntimeError("browser binary missing")

        events = await collect(stream_scrape(app_config, session_factory=broken_factory))

        assert events[-1] == {
            "event": "error",
            "data": {"errorKind": "InternalError", "message": "browser binary missing"},
        }

    @pytest.mark.asyncio
    async def test_early_close_closes_session(self, app_config, fake_session, session_factory):
        """Test abandoning the stream still closes the page session."""
        stream = stream_scrape(app_config, ScrapeOptions(enrich=True), session_factory=session_factory)
        seen = []
        async for event in stream:
            seen.append(event)
            if len(seen) == 2:
                break
        await stream.aclose()

        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_records_in_enriched_stream(self, app_config, session_factory):
        """Test enriched runs stream one record event per enriched record."""
        events = await collect(stream_scrape(app_config, ScrapeOptions(enrich=True), session_factory=session_factory))

        records = [e["data"] for e in events if e["event"] == "record"]
        assert len(records) == 6
        assert records[0]["howToApply"] == "Apply online"
        assert events[-1]["data"]["enriched"] is True

