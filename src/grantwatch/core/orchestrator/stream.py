"""
Streaming adapter over a scrape run.

Turns one scrape into an async iterator of {event, data} wire events that
always ends with exactly one terminal event: complete on success, error
on failure. Closing the iterator early disconnects the emitter and
cancels the run, which still closes its page session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, TYPE_CHECKING

from ..errors import ScrapeError
from ..models import ScrapeOptions
from .events import COMPLETE_EVENT, ERROR_EVENT, ProgressEmitter, ProgressEvent
from .runner import ScrapeRunner, SessionFactory

if TYPE_CHECKING:
    from ..config.models import AppConfig

logger = logging.getLogger(__name__)

INTERNAL_ERROR_KIND = "InternalError"

_DONE = object()


def error_event(error: BaseException) -> dict[str, Any]:
    """Terminal error event for an exception that ended the run."""
    if isinstance(error, ScrapeError):
        data = error.to_dict()
    else:
        data = {"errorKind": INTERNAL_ERROR_KIND, "message": str(error) or type(error).__name__}
    return {"event": ERROR_EVENT, "data": data}


async def stream_scrape(
    config: AppConfig,
    options: ScrapeOptions | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Run a scrape and yield its progress as wire events."""
    queue: asyncio.Queue[ProgressEvent | object] = asyncio.Queue()
    emitter = ProgressEmitter(queue.put_nowait, title_preview=config.enrichment.title_preview)
    runner = ScrapeRunner(config, session_factory=session_factory)

    task = asyncio.ensure_future(runner.run_with_emitter(options, emitter))
    task.add_done_callback(lambda _: queue.put_nowait(_DONE))

    try:
        while True:
            item = await queue.get()
            if item is _DONE:
                break
            assert isinstance(item, ProgressEvent)
            yield item.to_wire()

        error = task.exception()
        if error is not None:
            if not isinstance(error, ScrapeError):
                logger.error(f"Scrape failed unexpectedly: {error!r}")
            yield error_event(error)
            return

        yield {"event": COMPLETE_EVENT, "data": task.result().summary()}
    finally:
        if not task.done():
            emitter.disconnect()
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
