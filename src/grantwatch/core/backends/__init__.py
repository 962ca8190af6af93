"""Page session backends for browser automation."""

from .base import (
    BackendError,
    BrowserError,
    ElementNotFound,
    LocatorSpec,
    NavigationTimeout,
    PageSession,
)
from .playwright_backend import PlaywrightBackend

__all__ = [
    # Interface
    "PageSession",
    "LocatorSpec",
    # Errors
    "BackendError",
    "BrowserError",
    "NavigationTimeout",
    "ElementNotFound",
    # Playwright backend
    "PlaywrightBackend",
]
