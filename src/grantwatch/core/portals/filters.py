"""
Search filter application.

Filter markup varies between portal states, so each checkbox is looked up
on its own with a short bound and skipped when absent. Nothing here fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..backends.base import BrowserError, LocatorSpec

if TYPE_CHECKING:
    from ..backends.base import PageSession
    from ..config.models import SelectorConfig, TimeoutConfig

logger = logging.getLogger(__name__)


@dataclass
class FilterOutcome:
    """What the applicator managed to do."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    submitted: bool = False


class FilterApplicator:
    """Ticks filter checkboxes and submits the search form."""

    def __init__(self, selectors: SelectorConfig, timeouts: TimeoutConfig):
        self.selectors = selectors
        self.timeouts = timeouts

    async def apply_filters(
        self,
        session: PageSession,
        status_list: list[str],
        area_list: list[str],
    ) -> FilterOutcome:
        outcome = FilterOutcome()

        for label in [*status_list, *area_list]:
            checkbox = await session.try_find(
                LocatorSpec.css(self.selectors.filter_checkbox.format(label=label)),
                self.timeouts.filter_checkbox_ms,
            )
            if checkbox is None:
                outcome.skipped.append(label)
                continue
            try:
                await session.check(checkbox)
            except BrowserError as e:
                logger.debug(f"Could not tick filter {label!r}: {e}")
                outcome.skipped.append(label)
                continue
            outcome.applied.append(label)

        submit = await session.try_find(
            LocatorSpec.css(self.selectors.search_submit),
            self.timeouts.filter_submit_ms,
        )
        if submit is not None:
            try:
                await session.click(submit)
            except BrowserError as e:
                logger.warning(f"Search submit failed, continuing with unfiltered results: {e}")
            else:
                if not await session.wait_for_load(self.timeouts.network_idle_ms):
                    logger.debug("Network did not settle after search submit")
                outcome.submitted = True

        logger.info(
            f"Filters applied: {len(outcome.applied)}, skipped: {len(outcome.skipped)}, "
            f"submitted: {outcome.submitted}"
        )
        return outcome
