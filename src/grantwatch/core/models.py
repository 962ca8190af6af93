"""
Runtime data structures for a scrape invocation.

Records and results are immutable once built; enrichment produces new
records with dataclasses.replace rather than mutating the listing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any


# Optional fields filled only by detail-page enrichment, in wire order
ENRICHED_FIELDS = (
    ("description", "description"),
    ("eligibility", "eligibility"),
    ("how_to_apply", "howToApply"),
    ("contact_info", "contactInfo"),
    ("additional_info", "additionalInfo"),
)


@dataclass(frozen=True)
class GrantRecord:
    """A single funding opportunity from the search listing.

    Listing fields default to an empty string when the page did not
    provide them. The optional fields stay None until enrichment finds
    something for them.
    """

    title: str
    link: str
    funder: str = ""
    max_amount: str = ""
    deadline: str = ""
    status: str = ""
    area_of_work: str = ""

    # Detail page fields
    description: str | None = None
    eligibility: str | None = None
    how_to_apply: str | None = None
    contact_info: str | None = None
    additional_info: str | None = None

    @property
    def is_enriched(self) -> bool:
        """Check if any detail page field has been filled."""
        return any(getattr(self, name) is not None for name, _ in ENRICHED_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape, omitting absent optional fields."""
        data: dict[str, Any] = {
            "title": self.title,
            "funder": self.funder,
            "maxAmount": self.max_amount,
            "deadline": self.deadline,
            "status": self.status,
            "link": self.link,
            "areaOfWork": self.area_of_work,
        }
        for name, wire_name in ENRICHED_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[wire_name] = value
        return data


@dataclass(frozen=True)
class ScrapeOptions:
    """Per-invocation options."""

    enrich: bool = False


@dataclass(frozen=True)
class ScrapeResult:
    """Complete result of one scrape invocation."""

    records: tuple[GrantRecord, ...]
    filters_used: dict[str, list[str]]
    duration_ms: int
    enriched: bool
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    cancelled: bool = False

    @property
    def total_found(self) -> int:
        """Number of records returned."""
        return len(self.records)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape."""
        return {
            "records": [record.to_dict() for record in self.records],
            "totalFound": self.total_found,
            "filtersUsed": {key: list(values) for key, values in self.filters_used.items()},
            "timestamp": self.timestamp,
            "durationMs": self.duration_ms,
            "enriched": self.enriched,
            "cancelled": self.cancelled,
        }

    def summary(self) -> dict[str, Any]:
        """Terminal event payload for streaming consumers."""
        return {
            "totalFound": self.total_found,
            "enriched": self.enriched,
            "durationMs": self.duration_ms,
            "timestamp": self.timestamp,
        }


def record_from_fields(bag: dict[str, str]) -> GrantRecord:
    """Build a record from an extracted field bag, ignoring unknown keys."""
    known = {f.name for f in fields(GrantRecord)}
    return GrantRecord(**{key: value for key, value in bag.items() if key in known})
