"""Fetch utilities - bounded races and retries."""

from .race import race
from .retries import RetryConfig, retry_async

__all__ = [
    "race",
    "RetryConfig",
    "retry_async",
]
