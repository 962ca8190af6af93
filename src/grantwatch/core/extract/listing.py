"""
Record extraction for the currently loaded listing page.

Runs the matcher cascade over a snapshot of the page: the first matcher
that yields at least one usable record is used exclusively for that page.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urljoin

from lxml.etree import ParserError

from ..models import GrantRecord, record_from_fields
from .matchers import Matcher, PageContext, default_matchers

if TYPE_CHECKING:
    from grantwatch.core.backends.base import PageSession
    from grantwatch.core.config.models import PortalConfig

logger = logging.getLogger(__name__)


def resolve_link(href: str, base_url: str) -> str:
    """Make a scheme link absolute against the portal origin."""
    if not href:
        return ""
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(f"{base_url.rstrip('/')}/", href)


class RecordExtractor:
    """Extracts GrantRecords from listing pages."""

    def __init__(self, portal: PortalConfig, matchers: list[Matcher] | None = None):
        self.base_url = portal.base_url
        self.detail_link_fragment = portal.selectors.detail_link_fragment
        self.matchers = matchers if matchers is not None else default_matchers()

    async def extract_page(self, session: PageSession) -> list[GrantRecord]:
        """Extract the records visible on the session's current page."""
        html = await session.content()
        return self.extract_html(html)

    def extract_html(self, html: str) -> list[GrantRecord]:
        try:
            context = PageContext.from_html(html, self.detail_link_fragment)
        except (ParserError, ValueError) as e:
            logger.warning(f"Could not parse listing page: {e}")
            return []

        for matcher in self.matchers:
            records = self._to_records(matcher.try_extract(context))
            if records:
                logger.debug(f"Matcher {matcher.name} found {len(records)} records")
                return records

        return []

    def _to_records(self, bags: list[dict[str, str]]) -> list[GrantRecord]:
        records = []
        for bag in bags:
            bag["link"] = resolve_link(bag.get("link", ""), self.base_url)
            if not bag.get("title") or not bag["link"]:
                logger.debug(f"Dropping candidate without title or link: {bag}")
                continue
            records.append(record_from_fields(bag))
        return records
