"""
Bounded races between page conditions.

The portal signals completion of an action in more than one way (a URL
change, an element appearing, or nothing observable at all). race runs
the candidate waits side by side, reports which finished first and
cancels the rest so no wait outlives the race.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Mapping

logger = logging.getLogger(__name__)


async def race(
    branches: Mapping[str, Awaitable[object]],
    timeout_ms: int | None = None,
    require_truthy: bool = True,
) -> str | None:
    """Run named awaitables concurrently and return the first winner.

    A branch wins by completing without error, and (when require_truthy
    is set) with a truthy result. Branches that fail or return a falsy
    result drop out. All remaining branches are cancelled before return.

    Args:
        branches: Mapping of branch name to awaitable
        timeout_ms: Overall bound; None waits until a branch wins or all drop out
        require_truthy: Treat falsy results as a loss

    Returns:
        Name of the winning branch, or None if nothing won in time
    """
    tasks: dict[asyncio.Task[object], str] = {
        asyncio.ensure_future(awaitable): name for name, awaitable in branches.items()
    }
    pending: set[asyncio.Task[object]] = set(tasks)
    loop = asyncio.get_running_loop()
    deadline = None if timeout_ms is None else loop.time() + timeout_ms / 1000

    try:
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, pending = await asyncio.wait(
                pending,
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                return None

            # Completion order within one wakeup follows insertion order
            for task in sorted(done, key=list(tasks).index):
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    logger.debug(f"Race branch {tasks[task]} failed: {error}")
                    continue
                if require_truthy and not task.result():
                    continue
                return tasks[task]
        return None
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
