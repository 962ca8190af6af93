"""Extraction of records from listing pages and fields from detail pages."""

from .detail import DetailExtractor, DetailFields
from .listing import RecordExtractor, resolve_link
from .matchers import (
    DetailLinkScanMatcher,
    ListItemMatcher,
    Matcher,
    PageContext,
    SchemeRowMatcher,
    default_matchers,
)

__all__ = [
    # Listing
    "RecordExtractor",
    "resolve_link",
    # Matchers
    "Matcher",
    "PageContext",
    "ListItemMatcher",
    "SchemeRowMatcher",
    "DetailLinkScanMatcher",
    "default_matchers",
    # Detail pages
    "DetailExtractor",
    "DetailFields",
]
