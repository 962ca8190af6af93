"""
Scrape runner orchestrator.

Coordinates one scrape invocation: login → filters → pagination →
optional enrichment, on a single page session that is closed on every
exit path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, TYPE_CHECKING

from ..backends.playwright_backend import PlaywrightBackend
from ..config.loader import PASSWORD_ENV, USERNAME_ENV
from ..enrich.pipeline import EnrichmentPipeline
from ..errors import ConfigurationError, ScrapeError
from ..extract.listing import RecordExtractor
from ..models import GrantRecord, ScrapeOptions, ScrapeResult
from ..portals.filters import FilterApplicator
from ..portals.pagination import PaginationWalker
from ..portals.session import SessionNavigator
from .events import ProgressCallback, ProgressEmitter

if TYPE_CHECKING:
    from ..backends.base import PageSession
    from ..config.models import AppConfig, Credentials


logger = logging.getLogger(__name__)

SessionFactory = Callable[["AppConfig"], "PageSession"]


@dataclass
class RunStats:
    """Statistics for a scrape run."""

    pages_walked: int = 0
    records_found: int = 0
    records_enriched: int = 0
    walk_state: str = ""
    walk_reason: str = ""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pages_walked": self.pages_walked,
            "records_found": self.records_found,
            "records_enriched": self.records_enriched,
            "walk_state": self.walk_state,
            "walk_reason": self.walk_reason,
            "duration_seconds": self.duration_seconds,
        }


class ScrapeRunner:
    """Orchestrates the complete scraping workflow.

    Coordinates:
    - Credential validation before any browser activity
    - Session creation and guaranteed cleanup
    - Login, search filters and pagination
    - Optional detail page enrichment
    - Phase events for streaming consumers
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        session_factory: SessionFactory | None = None,
    ) -> None:
        """Initialize the scrape runner.

        Args:
            config: Application configuration
            session_factory: Builds an unstarted page session from config
                (defaults to a Playwright browser)
        """
        self.config = config
        self.session_factory = session_factory or PlaywrightBackend.from_config
        self.stats = RunStats()

    async def run(
        self,
        options: ScrapeOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ScrapeResult:
        """Execute a complete scrape run.

        Args:
            options: Per-invocation options
            on_progress: Optional progress callback

        Returns:
            ScrapeResult with all records found

        Raises:
            ConfigurationError: If credentials are missing
            AuthenticationError: If login fails
            NavigationTimeoutError: If the portal does not load
        """
        emitter = ProgressEmitter(on_progress, title_preview=self.config.enrichment.title_preview)
        return await self.run_with_emitter(options, emitter)

    async def run_with_emitter(
        self,
        options: ScrapeOptions | None,
        emitter: ProgressEmitter,
    ) -> ScrapeResult:
        options = options or ScrapeOptions()
        credentials = self.config.credentials
        if credentials is None:
            raise ConfigurationError(f"{USERNAME_ENV} and {PASSWORD_ENV} environment variables required")

        started = time.monotonic()
        self.stats = RunStats()
        logger.info(f"Starting scrape of {self.config.portal.name} (enrich={options.enrich})")

        await emitter.phase("launching", "Launching browser...")
        session = self.session_factory(self.config)

        try:
            async with session:
                records = await self._scrape(session, credentials, options, emitter)
        except ScrapeError as e:
            logger.error(f"Scrape failed: {e.kind}: {e.message}")
            raise
        finally:
            self.stats.finished_at = datetime.now(timezone.utc)

        duration_ms = int((time.monotonic() - started) * 1000)
        result = ScrapeResult(
            records=tuple(records),
            filters_used=self.config.filters.as_used(),
            duration_ms=duration_ms,
            enriched=options.enrich,
            cancelled=emitter.cancelled,
        )
        logger.info(
            f"Scrape complete in {duration_ms}ms - found {result.total_found} grants "
            f"({self.stats.to_dict()})"
        )
        return result

    async def _scrape(
        self,
        session: PageSession,
        credentials: Credentials,
        options: ScrapeOptions,
        emitter: ProgressEmitter,
    ) -> list[GrantRecord]:
        config = self.config

        await emitter.phase("login", "Logging into Idox portal...")
        navigator = SessionNavigator(session, config.portal, config.timeouts)
        await navigator.authenticate(credentials)

        await emitter.phase("searching", "Searching for grants...")
        await navigator.open_search()
        applicator = FilterApplicator(config.portal.selectors, config.timeouts)
        await applicator.apply_filters(session, config.filters.status, config.filters.area_of_work)

        await emitter.phase("extracting", "Extracting grants from search results...")
        walker = PaginationWalker(
            RecordExtractor(config.portal),
            config.portal.selectors,
            config.timeouts,
            hard_cap=config.pagination.hard_cap,
            portal_name=config.portal.name,
        )
        outcome = await walker.walk(session, emitter)
        records = outcome.records
        self.stats.pages_walked = outcome.pages_walked
        self.stats.records_found = len(records)
        self.stats.walk_state = outcome.state.value
        self.stats.walk_reason = outcome.reason

        await emitter.phase("extracted", f"Found {len(records)} grants", recordsFound=len(records))

        if not options.enrich or not records:
            return records
        if emitter.cancelled:
            logger.info("Skipping enrichment, consumer disconnected")
            return records

        await emitter.phase(
            "enriching_start",
            f"Starting enrichment of {len(records)} grants...",
            totalRecords=len(records),
        )
        pipeline = EnrichmentPipeline(config.timeouts, config.enrichment)
        records = await pipeline.enrich(session, records, emitter)
        self.stats.records_enriched = sum(1 for record in records if record.is_enriched)
        return records


async def run_scrape(
    config: AppConfig,
    options: ScrapeOptions | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> ScrapeResult:
    """Run a blocking scrape and return the complete result."""
    runner = ScrapeRunner(config, session_factory=session_factory)
    return await runner.run(options)


async def run_scrape_streaming(
    config: AppConfig,
    options: ScrapeOptions | None,
    on_progress: ProgressCallback | None,
    *,
    session_factory: SessionFactory | None = None,
) -> ScrapeResult:
    """Run a scrape that reports ordered progress events to on_progress."""
    runner = ScrapeRunner(config, session_factory=session_factory)
    return await runner.run(options, on_progress)
