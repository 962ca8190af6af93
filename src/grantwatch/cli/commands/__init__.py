"""CLI command modules."""

from . import config, scrape

__all__ = [
    "config",
    "scrape",
]
