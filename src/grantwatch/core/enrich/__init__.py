"""Detail page enrichment of listing records."""

from .pipeline import DetailPageError, EnrichmentPipeline, merge_details

__all__ = [
    "DetailPageError",
    "EnrichmentPipeline",
    "merge_details",
]
