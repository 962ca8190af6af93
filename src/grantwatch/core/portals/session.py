"""
Portal entry and login.

The portal gives no single reliable signal that a login went through:
depending on account state it lands on Home, lands on Search, or just
re-renders with a navigation link. After submitting, the navigator races
all of those against a fixed fallback delay and then checks the only
thing that matters, whether the login form is still showing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..backends.base import BrowserError, LocatorSpec, NavigationTimeout
from ..errors import AuthenticationError, NavigationTimeoutError
from ..fetch.race import race
from ..fetch.retries import RetryConfig, retry_async

if TYPE_CHECKING:
    from ..backends.base import PageSession
    from ..config.models import Credentials, PortalConfig, TimeoutConfig

logger = logging.getLogger(__name__)


class SessionNavigator:
    """Opens the portal and authenticates one page session."""

    def __init__(self, session: PageSession, portal: PortalConfig, timeouts: TimeoutConfig):
        self.session = session
        self.portal = portal
        self.selectors = portal.selectors
        self.timeouts = timeouts

    @property
    def search_link_selector(self) -> str:
        return f'a:has-text("{self.selectors.search_link_text}")'

    async def authenticate(self, credentials: Credentials) -> None:
        """Log in, leaving the session on the post-login page.

        Raises:
            NavigationTimeoutError: If the portal entry page never loads
            AuthenticationError: If the login form is missing, or still
                showing after the credentials were submitted, or the
                browser fails while the credentials are entered
        """
        await self.load_portal()
        await self.accept_cookies()

        logger.info(f"Logging in as {credentials.masked_username}")
        if not await self.session.wait_for_selector(
            self.selectors.login_email, self.timeouts.login_form_ms
        ):
            raise AuthenticationError("Login failed: login form not found", detail="")

        try:
            await self.session.fill(self.selectors.login_email, credentials.username)
            await self.session.fill(
                self.selectors.login_password,
                credentials.password.get_secret_value(),
            )
            submit = await self.session.try_find(
                LocatorSpec.css(self.selectors.login_submit),
                self.timeouts.default_action_ms,
            )
            if submit is None:
                raise AuthenticationError("Login failed: submit control not found", detail="")
            await self.session.click(submit)
        except BrowserError as e:
            raise AuthenticationError(f"Login failed: could not submit credentials ({e})", detail="") from e

        winner = await self._race_login_signals()
        logger.debug(f"Login signal: {winner or 'none'}, now at {self.session.url}")

        if await self.session.is_visible(self.selectors.login_email):
            detail = await self.session.text_of(self.selectors.login_errors, 1000)
            raise AuthenticationError(f"Login failed. Error: {detail or 'Unknown'}", detail=detail)

        logger.info("Logged in successfully")

    async def load_portal(self) -> None:
        """Load the entry page, retrying on navigation timeout.

        Any browser failure while loading is reported as NavigationTimeoutError.
        """
        url = self.portal.entry_url
        logger.info(f"Navigating to {url}")

        retry_config = RetryConfig.for_portal_load(self.timeouts)
        try:
            await retry_async(self.session.goto, url, self.timeouts.portal_load_ms, config=retry_config)
        except NavigationTimeout as e:
            raise NavigationTimeoutError(
                f"Portal did not load within {self.timeouts.portal_load_ms}ms: {url}",
                url=url,
            ) from e
        except BrowserError as e:
            raise NavigationTimeoutError(f"Portal could not be loaded: {url} ({e})", url=url) from e

    async def accept_cookies(self) -> bool:
        """Dismiss the consent banner if one shows up."""
        button = await self.session.try_find(
            LocatorSpec.css(self.selectors.cookie_accept),
            self.timeouts.cookie_banner_ms,
        )
        if button is None:
            logger.debug("No cookie banner found, continuing")
            return False

        logger.debug("Accepting cookies")
        try:
            await self.session.click(button)
        except BrowserError as e:
            logger.debug(f"Cookie banner click failed: {e}")
            return False
        await self.session.pause(self.timeouts.cookie_settle_ms)
        return True

    async def _race_login_signals(self) -> str | None:
        branches = {
            f"url:{pattern}": self.session.wait_for_url(pattern, self.timeouts.login_signal_ms)
            for pattern in self.portal.post_login_url_patterns
        }
        branches["search_link"] = self.session.wait_for_selector(
            self.search_link_selector, self.timeouts.login_signal_ms
        )
        branches["fallback"] = self._fallback_delay()
        return await race(branches, timeout_ms=self.timeouts.login_signal_ms)

    async def _fallback_delay(self) -> bool:
        await self.session.pause(self.timeouts.login_fallback_ms)
        return True

    async def open_search(self) -> bool:
        """Follow the post-login link to the funding search, if present."""
        link = await self.session.try_find(
            LocatorSpec.css(self.search_link_selector),
            self.timeouts.search_link_ms,
        )
        if link is None:
            logger.debug("Search link not found, staying on current page")
            return False

        logger.info("Navigating to funding search")
        try:
            await self.session.click(link)
        except BrowserError as e:
            logger.warning(f"Search link click failed: {e}")
            return False
        await self.session.wait_for_load(self.timeouts.network_idle_ms)
        return True
