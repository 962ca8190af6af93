"""
Detail page enrichment.

Visits each record's scheme page in turn and fills the long-form fields.
A record whose page fails to load or parse is kept exactly as listed;
enrichment never fails as a whole and never drops or reorders records.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from lxml.etree import ParserError

from ..backends.base import BackendError
from ..config.models import EnrichmentConfig, TimeoutConfig
from ..extract.detail import DetailExtractor, DetailFields
from ..models import GrantRecord
from ..normalize.text import sanitize

if TYPE_CHECKING:
    from ..backends.base import PageSession
    from ..orchestrator.events import ProgressEmitter

logger = logging.getLogger(__name__)


class DetailPageError(BackendError):
    """Detail page answered with an error status."""
    pass


def merge_details(record: GrantRecord, details: DetailFields) -> GrantRecord:
    """Sanitize captured fields onto a copy of record.

    Empty captures keep whatever the record already had.
    """
    return replace(
        record,
        description=sanitize(details.description) or record.description,
        eligibility=sanitize(details.eligibility) or record.eligibility,
        how_to_apply=sanitize(details.how_to_apply) or record.how_to_apply,
        contact_info=sanitize(details.contact_info) or record.contact_info,
        area_of_work=sanitize(details.area_of_work) or record.area_of_work,
        additional_info=sanitize(details.additional_info) or record.additional_info,
    )


class EnrichmentPipeline:
    """Sequential detail page enrichment with a politeness delay."""

    def __init__(
        self,
        timeouts: TimeoutConfig | None = None,
        limits: EnrichmentConfig | None = None,
        extractor: DetailExtractor | None = None,
    ):
        self.timeouts = timeouts or TimeoutConfig()
        self.limits = limits or EnrichmentConfig()
        self.extractor = extractor or DetailExtractor(self.limits)

    async def enrich(
        self,
        session: PageSession,
        records: list[GrantRecord],
        emitter: ProgressEmitter | None = None,
    ) -> list[GrantRecord]:
        """Enrich records in order.

        Returns:
            A list of the same length and order as records
        """
        total = len(records)
        enriched: list[GrantRecord] = []

        for index, record in enumerate(records):
            if emitter is not None and emitter.cancelled:
                logger.info(f"Enrichment cancelled, keeping {total - index} records as listed")
                enriched.extend(records[index:])
                break

            position = f"[{index + 1}/{total}]"
            if emitter is not None:
                await emitter.progress(index + 1, total, record.title)

            try:
                result = await self.enrich_record(session, record)
            except (BackendError, ParserError, ValueError) as e:
                logger.warning(f"{position} Failed to enrich {record.title[:self.limits.title_preview]}: {e}")
                enriched.append(record)
                continue

            logger.debug(f"{position} Enriched {record.title[:self.limits.title_preview]}")
            enriched.append(result)
            if emitter is not None:
                await emitter.record(result)
            await session.pause(self.timeouts.politeness_ms)

        logger.info(f"Enrichment complete: {len(enriched)} records processed")
        return enriched

    async def enrich_record(self, session: PageSession, record: GrantRecord) -> GrantRecord:
        """Load one detail page and merge its fields into record.

        Raises:
            BackendError: If the page fails to load or returns an error status
        """
        status = await session.goto(record.link, self.timeouts.detail_page_ms)
        if status >= 400:
            raise DetailPageError(f"HTTP {status}", url=record.link, status_code=status)

        html = await session.content()
        return merge_details(record, self.extractor.extract(html))
