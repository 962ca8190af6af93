"""
Progress events and the emitter that delivers them.

The walker and the enrichment pipeline report through a ProgressEmitter.
The emitter tolerates an absent callback, and once the consumer goes away
it stops calling out and raises a cancel flag the loops check between
pages and records.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import orjson

from ..models import GrantRecord

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Kinds of progress events."""

    PHASE = "phase"
    PROGRESS = "progress"
    RECORD = "record"
    PAGE = "page"


# Terminal wire events, produced only by the stream adapter
COMPLETE_EVENT = "complete"
ERROR_EVENT = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """One unit of the ordered progress stream."""

    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Convert to the {event, data} wire shape."""
        return {"event": self.kind.value, "data": self.payload}


ProgressCallback = Callable[[ProgressEvent], Union[Awaitable[None], None]]


class ConsumerDisconnected(Exception):
    """Raised by a progress callback whose consumer has gone away."""
    pass


def encode_event(wire_event: dict[str, Any]) -> str:
    """Serialize a wire event to a single JSON line (no trailing newline)."""
    return orjson.dumps(wire_event, default=str).decode("utf-8")


class ProgressEmitter:
    """Delivers progress events to an optional callback.

    Callbacks may be plain functions or coroutine functions. A callback
    raising ConsumerDisconnected or ConnectionError closes the emitter,
    as does an explicit disconnect(). A closed emitter never invokes the
    callback again and reports cancelled.
    """

    def __init__(self, callback: ProgressCallback | None = None, title_preview: int = 60):
        self._callback = callback
        self._closed = False
        self.title_preview = title_preview

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        """True once the consumer disconnected; running loops should stop."""
        return self._closed

    def disconnect(self) -> None:
        if not self._closed:
            logger.info("Progress consumer disconnected")
        self._closed = True

    async def emit(self, event: ProgressEvent) -> None:
        if self._callback is None or self._closed:
            return

        try:
            result = self._callback(event)
            if inspect.isawaitable(result):
                await result
        except (ConsumerDisconnected, ConnectionError) as e:
            logger.debug(f"Progress callback failed: {e}")
            self.disconnect()

    # Event builders

    async def phase(self, phase: str, message: str, **extra: Any) -> None:
        await self.emit(ProgressEvent(EventKind.PHASE, {"phase": phase, "message": message, **extra}))

    async def progress(self, current: int, total: int, title: str) -> None:
        await self.emit(
            ProgressEvent(
                EventKind.PROGRESS,
                {
                    "phase": "enriching",
                    "current": current,
                    "total": total,
                    "title": title[: self.title_preview],
                    "percentage": int(current * 100 / total + 0.5) if total else 100,
                },
            )
        )

    async def record(self, record: GrantRecord) -> None:
        await self.emit(ProgressEvent(EventKind.RECORD, record.to_dict()))

    async def page(
        self,
        page: int,
        found: int,
        total_so_far: int,
        page_info: dict[str, int] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"page": page, "found": found, "totalSoFar": total_so_far}
        if page_info:
            payload["pageInfo"] = page_info
        await self.emit(ProgressEvent(EventKind.PAGE, payload))
