"""
Listing pagination.

Result pages are swapped in by script, not by navigation, so there is no
"page loaded" event to wait for. The walker finds the control for the
next page number with escalating probes, clicks it, and waits for the
first record title to change. It always stops: on an empty page, when no
probe finds a next page, when a page can no longer be read, when the
consumer cancels, or at the hard cap. Records gathered before a browser
failure are kept.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from lxml import html as lxml_html
from lxml.etree import ParserError

from ..backends.base import BackendError, BrowserError, LocatorSpec
from ..logging import get_contextual_logger
from ..models import GrantRecord

if TYPE_CHECKING:
    from ..backends.base import PageSession
    from ..config.models import SelectorConfig, TimeoutConfig
    from ..extract.listing import RecordExtractor
    from ..orchestrator.events import ProgressEmitter

logger = logging.getLogger(__name__)

DEFAULT_HARD_CAP = 60


class WalkState(str, Enum):
    LISTING = "listing"
    ADVANCING = "advancing"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PaginationCursor:
    """Current listing page and the safety cap."""

    current_page: int = 1
    hard_cap: int = DEFAULT_HARD_CAP

    def __post_init__(self) -> None:
        if self.current_page < 1:
            raise ValueError("current_page must be >= 1")

    def advance(self) -> "PaginationCursor":
        return replace(self, current_page=self.current_page + 1)

    @property
    def exceeded(self) -> bool:
        return self.current_page > self.hard_cap


@dataclass
class WalkOutcome:
    """Records gathered by one walk and why it stopped."""

    records: list[GrantRecord] = field(default_factory=list)
    pages_walked: int = 0
    state: WalkState = WalkState.LISTING
    reason: str = ""
    page_info: dict[str, int] | None = None


# =============================================================================
# Probes
# =============================================================================


class PageInfoProbe:
    """Reads the "Page X of Y" banner.

    Advisory only: the banner is logged and reported, never used to
    decide whether another page exists.
    """

    PATTERN = re.compile(r"Page (\d+) of (\d+)")

    def read(self, html: str) -> dict[str, int] | None:
        if not html:
            return None
        try:
            text = lxml_html.fromstring(html).text_content()
        except (ParserError, ValueError):
            return None
        match = self.PATTERN.search(text)
        if not match:
            return None
        return {"current": int(match.group(1)), "total": int(match.group(2))}


class NextPageProbe(ABC):
    """One strategy for finding and triggering the next page control."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def trigger(self, session: PageSession, page_number: int) -> bool:
        """Click the control for page_number. Returns False if not found."""
        pass


class TitleAttributeProbe(NextPageProbe):
    """Link whose title attribute names the page number."""

    def __init__(self, template: str, timeout_ms: int):
        self.template = template
        self.timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return "title_attribute"

    async def trigger(self, session: PageSession, page_number: int) -> bool:
        spec = LocatorSpec.css(self.template.format(page=page_number))
        return await _click_found(session, spec, self.timeout_ms)


class AccessibleNameProbe(NextPageProbe):
    """Link whose accessible name is exactly the page number."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms

    @property
    def name(self) -> str:
        return "accessible_name"

    async def trigger(self, session: PageSession, page_number: int) -> bool:
        spec = LocatorSpec.role("link", str(page_number))
        return await _click_found(session, spec, self.timeout_ms)


class StructuralScanProbe(NextPageProbe):
    """Scan the pagination block and click from inside the page.

    Catches script-driven controls the locator probes do not consider
    visible or clickable.
    """

    def __init__(self, container_selector: str):
        self.container_selector = container_selector

    @property
    def name(self) -> str:
        return "structural_scan"

    async def trigger(self, session: PageSession, page_number: int) -> bool:
        return await session.dispatch_click(self.container_selector, str(page_number))


async def _click_found(session: PageSession, spec: LocatorSpec, timeout_ms: int) -> bool:
    handle = await session.try_find(spec, timeout_ms)
    if handle is None:
        return False
    try:
        await session.click(handle)
    except BrowserError as e:
        logger.debug(f"Found {spec.describe()} but click failed: {e}")
        return False
    return True


def default_probes(selectors: SelectorConfig, timeouts: TimeoutConfig) -> list[NextPageProbe]:
    """Next-page probes in escalation order."""
    return [
        TitleAttributeProbe(selectors.next_page_title, timeouts.next_page_title_ms),
        AccessibleNameProbe(timeouts.next_page_role_ms),
        StructuralScanProbe(selectors.pagination_links),
    ]


# =============================================================================
# Walker
# =============================================================================


class PaginationWalker:
    """Drives the record extractor across all listing pages."""

    def __init__(
        self,
        extractor: RecordExtractor,
        selectors: SelectorConfig,
        timeouts: TimeoutConfig,
        hard_cap: int = DEFAULT_HARD_CAP,
        probes: list[NextPageProbe] | None = None,
        portal_name: str | None = None,
    ):
        self.extractor = extractor
        self.selectors = selectors
        self.timeouts = timeouts
        self.hard_cap = min(hard_cap, DEFAULT_HARD_CAP)
        self.probes = probes if probes is not None else default_probes(selectors, timeouts)
        self.portal_name = portal_name
        self.page_info_probe = PageInfoProbe()

    async def walk(self, session: PageSession, emitter: ProgressEmitter | None = None) -> WalkOutcome:
        cursor = PaginationCursor(current_page=1, hard_cap=self.hard_cap)
        outcome = WalkOutcome()
        first_title = ""

        try:
            outcome.page_info = self.page_info_probe.read(await session.content())
        except BackendError as e:
            logger.debug(f"Could not read page info: {e}")
        if outcome.page_info:
            logger.info(
                f"Page info: page {outcome.page_info['current']} of {outcome.page_info['total']}"
            )

        state = WalkState.LISTING
        while state in (WalkState.LISTING, WalkState.ADVANCING):
            log = get_contextual_logger("portals.pagination", portal=self.portal_name, page=cursor.current_page)

            if state is WalkState.LISTING:
                if emitter is not None and emitter.cancelled:
                    state, outcome.reason = WalkState.ABORTED, "cancelled"
                    continue

                try:
                    page_records = await self.extractor.extract_page(session)
                except BackendError as e:
                    log.warning(f"Could not read listing page, keeping {len(outcome.records)} records: {e}")
                    state, outcome.reason = WalkState.EXHAUSTED, "read_failed"
                    continue
                log.info(f"Found {len(page_records)} records")
                if not page_records:
                    state, outcome.reason = WalkState.EXHAUSTED, "empty_page"
                    continue

                outcome.records.extend(page_records)
                outcome.pages_walked += 1
                first_title = page_records[0].title
                if emitter is not None:
                    await emitter.page(
                        cursor.current_page,
                        len(page_records),
                        len(outcome.records),
                        outcome.page_info if cursor.current_page == 1 else None,
                    )
                state = WalkState.ADVANCING

            else:
                next_cursor = cursor.advance()
                if next_cursor.exceeded:
                    log.warning(f"Stopping at the {self.hard_cap} page safety cap")
                    state, outcome.reason = WalkState.ABORTED, "hard_cap"
                    continue

                try:
                    probe_name = await self._trigger_next(session, next_cursor.current_page)
                    if probe_name is not None:
                        await self._wait_for_new_content(session, first_title)
                except BackendError as e:
                    log.warning(f"Could not open page {next_cursor.current_page}: {e}")
                    state, outcome.reason = WalkState.EXHAUSTED, "advance_failed"
                    continue

                if probe_name is None:
                    log.info("No more pages")
                    state, outcome.reason = WalkState.EXHAUSTED, "no_next_page"
                    continue

                log.debug(f"Opened page {next_cursor.current_page} via {probe_name}")
                cursor = next_cursor
                state = WalkState.LISTING

        outcome.state = state
        logger.info(
            f"Pagination {state.value} ({outcome.reason}): "
            f"{len(outcome.records)} records from {outcome.pages_walked} pages"
        )
        return outcome

    async def _trigger_next(self, session: PageSession, page_number: int) -> str | None:
        for probe in self.probes:
            if await probe.trigger(session, page_number):
                return probe.name
        return None

    async def _wait_for_new_content(self, session: PageSession, previous_title: str) -> None:
        changed = await session.wait_for_text_change(
            self.selectors.first_title_link,
            previous_title,
            self.timeouts.content_change_ms,
        )
        if not changed:
            logger.debug("Page change not detected, falling back to a fixed settle")
            await session.pause(self.timeouts.content_change_fallback_ms)
        await session.pause(self.timeouts.page_settle_ms)
