"""
Fatal error taxonomy for scrape invocations.

Only these errors escape a scrape. Everything else (a missing cookie banner,
an absent filter checkbox, a detail page that fails to load) is absorbed
where it happens.
"""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for errors that abort a scrape invocation."""

    kind = "ScrapeError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Wire shape of the error for streaming consumers."""
        return {"errorKind": self.kind, "message": self.message}


class ConfigurationError(ScrapeError):
    """Required configuration (credentials, config file) is missing or invalid."""

    kind = "ConfigurationError"

    def __init__(self, message: str, path: str | None = None, details: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.details = details


class AuthenticationError(ScrapeError):
    """Login form still present after submitting credentials."""

    kind = "AuthenticationError"

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail


class NavigationTimeoutError(ScrapeError):
    """The portal's entry page did not load within its bound."""

    kind = "NavigationTimeoutError"

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url
