"""
Retry utilities with tenacity.

Only the initial portal load is retried. Everything after it runs on an
authenticated page whose state a blind retry would not restore.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from ..backends.base import NavigationTimeout

if TYPE_CHECKING:
    from ..config.models import TimeoutConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Attempts and backoff (in seconds) for one retried operation."""

    max_attempts: int = 2
    min_wait: float = 1
    max_wait: float = 5
    multiplier: float = 2
    jitter: bool = True
    retry_exceptions: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def for_portal_load(cls, timeouts: TimeoutConfig) -> "RetryConfig":
        """Entry page loads retry on navigation timeouts only."""
        return cls(
            max_attempts=timeouts.portal_load_attempts,
            retry_exceptions=(NavigationTimeout,),
        )

    def wait_strategy(self) -> Any:
        if self.jitter:
            return wait_random_exponential(multiplier=self.multiplier, min=self.min_wait, max=self.max_wait)
        return wait_exponential(multiplier=self.multiplier, min=self.min_wait, max=self.max_wait)

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait_strategy(),
            retry=retry_if_exception_type(self.retry_exceptions),
            before_sleep=_log_retry,
            reraise=True,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed ({error}), retrying in {delay:.1f}s"
    )


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Call an async function, retrying per config.

    Raises:
        The last exception once all attempts fail
    """
    config = config or RetryConfig()

    async for attempt in config.retrying():
        with attempt:
            return await coro_func(*args, **kwargs)

    raise RuntimeError("unreachable")  # pragma: no cover
