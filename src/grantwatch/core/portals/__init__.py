"""Portal navigation: login, search filters and listing pagination."""

from .filters import FilterApplicator, FilterOutcome
from .pagination import (
    AccessibleNameProbe,
    NextPageProbe,
    PageInfoProbe,
    PaginationCursor,
    PaginationWalker,
    StructuralScanProbe,
    TitleAttributeProbe,
    WalkOutcome,
    WalkState,
    default_probes,
)
from .session import SessionNavigator

__all__ = [
    # Login
    "SessionNavigator",
    # Filters
    "FilterApplicator",
    "FilterOutcome",
    # Pagination
    "PaginationCursor",
    "PaginationWalker",
    "WalkOutcome",
    "WalkState",
    "NextPageProbe",
    "TitleAttributeProbe",
    "AccessibleNameProbe",
    "StructuralScanProbe",
    "PageInfoProbe",
    "default_probes",
]
