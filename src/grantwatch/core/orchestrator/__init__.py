"""Orchestrator - run coordination and progress reporting."""

from .events import (
    ConsumerDisconnected,
    EventKind,
    ProgressCallback,
    ProgressEmitter,
    ProgressEvent,
    encode_event,
)
from .runner import RunStats, ScrapeRunner, run_scrape, run_scrape_streaming
from .stream import stream_scrape

__all__ = [
    # Runner
    "ScrapeRunner",
    "RunStats",
    "run_scrape",
    "run_scrape_streaming",
    # Events
    "EventKind",
    "ProgressEvent",
    "ProgressCallback",
    "ProgressEmitter",
    "ConsumerDisconnected",
    "encode_event",
    # Streaming
    "stream_scrape",
]
