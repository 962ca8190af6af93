"""
Page session interface and backend errors.

Defines the narrow capability the scrape engine drives. The engine never
touches the automation library directly: it navigates, probes for
elements, clicks, waits, and reads rendered HTML snapshots through this
interface, so backends can be swapped (and faked in tests).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


# =============================================================================
# Locators
# =============================================================================


@dataclass(frozen=True)
class LocatorSpec:
    """Specification of an element to probe for.

    kind "css" takes a CSS (or engine-extended) selector in value.
    kind "role" takes an accessible role and an exact accessible name.
    """

    kind: str
    value: str
    name: str | None = None

    @classmethod
    def css(cls, selector: str) -> "LocatorSpec":
        return cls(kind="css", value=selector)

    @classmethod
    def role(cls, role: str, name: str) -> "LocatorSpec":
        return cls(kind="role", value=role, name=name)

    def describe(self) -> str:
        """Short description for logs."""
        if self.kind == "role":
            return f"role={self.value}[name={self.name!r}]"
        return self.value


# =============================================================================
# Page Session
# =============================================================================


class PageSession(ABC):
    """One authenticated browser page, owned by a single scrape invocation.

    Waits return False (and probes return None) on expiry instead of
    raising, except goto, whose expiry is a NavigationTimeout.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        pass

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page URL."""
        pass

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int) -> int:
        """Navigate and wait for the network to settle.

        Returns:
            HTTP status of the main document

        Raises:
            NavigationTimeout: If the page did not load in time
            BrowserError: On any other navigation failure
        """
        pass

    @abstractmethod
    async def content(self) -> str:
        """Rendered HTML of the current page."""
        pass

    @abstractmethod
    async def try_find(self, spec: LocatorSpec, timeout_ms: int) -> Any | None:
        """Wait up to timeout_ms for a visible element.

        Returns:
            Opaque element handle, or None if absent
        """
        pass

    @abstractmethod
    async def click(self, handle: Any) -> None:
        """Click an element returned by try_find."""
        pass

    @abstractmethod
    async def check(self, handle: Any) -> None:
        """Check a checkbox returned by try_find."""
        pass

    @abstractmethod
    async def fill(self, selector: str, value: str, clear_first: bool = True) -> None:
        """Fill a text input."""
        pass

    @abstractmethod
    async def dispatch_click(self, container_selector: str, text: str) -> bool:
        """Click, from inside the page, the first element matching
        container_selector whose trimmed text equals text.

        Returns:
            True if an element was clicked
        """
        pass

    @abstractmethod
    async def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        """Wait for the URL to match a glob pattern."""
        pass

    @abstractmethod
    async def wait_for_selector(
        self,
        selector: str,
        timeout_ms: int,
        state: str = "visible",
    ) -> bool:
        """Wait for an element state (visible, attached, hidden, detached)."""
        pass

    @abstractmethod
    async def wait_for_load(self, timeout_ms: int) -> bool:
        """Wait for the network to go idle."""
        pass

    @abstractmethod
    async def wait_for_text_change(self, selector: str, previous: str, timeout_ms: int) -> bool:
        """Wait until the first element matching selector has non-empty
        text different from previous."""
        pass

    @abstractmethod
    async def text_of(self, selector: str, timeout_ms: int) -> str:
        """Trimmed text of the first matching element, empty if absent."""
        pass

    async def is_visible(self, selector: str, timeout_ms: int = 0) -> bool:
        """Check whether an element is visible."""
        return await self.try_find(LocatorSpec.css(selector), timeout_ms) is not None

    @abstractmethod
    async def pause(self, ms: int) -> None:
        """Fixed delay."""
        pass

    async def close(self) -> None:
        """Release the session. Not reusable afterwards."""
        pass

    async def __aenter__(self) -> "PageSession":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


# =============================================================================
# Errors
# =============================================================================


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class BrowserError(BackendError):
    """Browser automation failure."""
    pass


class NavigationTimeout(BrowserError):
    """Page didn't load in time."""
    pass


class ElementNotFound(BrowserError):
    """Selector didn't match any element."""
    pass
