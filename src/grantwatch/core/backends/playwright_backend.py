"""
Playwright implementation of the page session.

Provides async browser automation with:
- Headless Chromium (or Firefox/WebKit) with a fixed desktop user agent
- Stealth init script for bot detection avoidance
- Bounded probes that report absence instead of raising
- Screenshot capture on navigation errors
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .base import (
    BackendError,
    BrowserError,
    LocatorSpec,
    NavigationTimeout,
    PageSession,
)

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from grantwatch.core.config.models import AppConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Stealth Script
# =============================================================================


STEALTH_SCRIPT = """
// Override navigator.webdriver - primary detection method
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined
});

// Override navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-GB', 'en']
});

// Add Chrome runtime
window.chrome = {
    runtime: {},
    loadTimes: function() {},
    csi: function() {},
    app: {}
};
"""

# Clicks from inside the page, for scripted controls the locators miss
DISPATCH_CLICK_SCRIPT = """
([containerSelector, text]) => {
    const elements = Array.from(document.querySelectorAll(containerSelector));
    for (const element of elements) {
        if ((element.textContent || '').trim() === text) {
            element.click();
            return true;
        }
    }
    return false;
}
"""

TEXT_CHANGED_SCRIPT = r"""
([selector, previous]) => {
    const element = document.querySelector(selector);
    const text = (element && element.textContent || '').replace(/\s+/g, ' ').trim();
    return text.length > 0 && text !== previous;
}
"""


# =============================================================================
# PlaywrightBackend Implementation
# =============================================================================


class PlaywrightBackend(PageSession):
    """Playwright-based page session.

    The browser is launched on context entry and closed on exit, so a
    backend instance serves exactly one scrape invocation.
    """

    def __init__(
        self,
        headless: bool = True,
        browser_type: str = "chromium",
        user_agent: str | None = None,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        stealth: bool = True,
        default_timeout_ms: int = 10000,
        screenshots_on_error: bool = False,
        screenshots_path: Any = None,
    ):
        """Initialize Playwright backend.

        Args:
            headless: Run browser in headless mode
            browser_type: Browser to use (chromium, firefox, webkit)
            user_agent: Custom user agent string
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            stealth: Enable stealth mode for bot detection avoidance
            default_timeout_ms: Default timeout for page actions
            screenshots_on_error: Capture screenshots on navigation errors
            screenshots_path: Directory for error screenshots
        """
        self.headless = headless
        self.browser_type = browser_type
        self.user_agent = user_agent
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.stealth = stealth
        self.default_timeout_ms = default_timeout_ms
        self.screenshots_on_error = screenshots_on_error
        self.screenshots_path = screenshots_path

        # Playwright objects (initialized on start)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "PlaywrightBackend":
        """Build an unstarted backend from application config."""
        playwright_config = config.playwright
        return cls(
            headless=playwright_config.headless,
            browser_type=playwright_config.browser,
            user_agent=playwright_config.user_agent,
            viewport_width=playwright_config.viewport_width,
            viewport_height=playwright_config.viewport_height,
            stealth=playwright_config.stealth,
            default_timeout_ms=config.timeouts.default_action_ms,
            screenshots_on_error=playwright_config.screenshots_on_error,
            screenshots_path=playwright_config.screenshots_path,
        )

    @property
    def name(self) -> str:
        return "playwright"

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserError("Browser session not started")
        return self._page

    @property
    def url(self) -> str:
        return self.page.url

    async def start(self) -> None:
        """Launch browser, context and page."""
        if self._page is not None:
            return

        self._playwright = await async_playwright().start()

        if self.browser_type == "firefox":
            browser_launcher = self._playwright.firefox
        elif self.browser_type == "webkit":
            browser_launcher = self._playwright.webkit
        else:
            browser_launcher = self._playwright.chromium

        launch_args: list[str] = []
        if self.browser_type == "chromium":
            launch_args = ["--no-sandbox", "--disable-setuid-sandbox"]
            if self.stealth:
                launch_args.append("--disable-blink-features=AutomationControlled")

        try:
            self._browser = await browser_launcher.launch(headless=self.headless, args=launch_args)
        except PlaywrightError as e:
            await self.close()
            raise BackendError(
                f"Failed to launch {self.browser_type} browser. "
                f"Run: playwright install {self.browser_type}",
                cause=e,
            ) from e

        context_options: dict[str, Any] = {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
        }
        if self.user_agent:
            context_options["user_agent"] = self.user_agent

        self._context = await self._browser.new_context(**context_options)
        if self.stealth:
            await self._context.add_init_script(STEALTH_SCRIPT)

        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.default_timeout_ms)

        logger.info(f"Launched {self.browser_type} browser (headless={self.headless})")

    async def __aenter__(self) -> "PlaywrightBackend":
        await self.start()
        return self

    async def _capture_screenshot(self, prefix: str = "error") -> str | None:
        """Capture screenshot for debugging."""
        if not self.screenshots_on_error or self._page is None:
            return None

        try:
            self.screenshots_path.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = self.screenshots_path / f"{prefix}_{timestamp}.png"
            await self._page.screenshot(path=str(filepath), full_page=True)
            logger.info(f"Screenshot saved: {filepath}")
            return str(filepath)
        except (PlaywrightError, OSError) as e:
            logger.warning(f"Failed to capture screenshot: {e}")
            return None

    async def goto(self, url: str, timeout_ms: int) -> int:
        try:
            response = await self.page.goto(url, timeout=timeout_ms, wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            await self._capture_screenshot("timeout")
            raise NavigationTimeout(f"Navigation timeout: {url}", url=url, cause=e) from e
        except PlaywrightError as e:
            await self._capture_screenshot("error")
            raise BrowserError(f"Browser error: {e}", url=url, cause=e) from e

        # Same-document navigations have no response
        return response.status if response is not None else 200

    async def content(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as e:
            raise BrowserError(f"Could not read page content: {e}", url=self.url, cause=e) from e

    async def try_find(self, spec: LocatorSpec, timeout_ms: int) -> Any | None:
        if spec.kind == "role":
            locator = self.page.get_by_role(spec.value, name=spec.name, exact=True).first  # type: ignore[arg-type]
        else:
            locator = self.page.locator(spec.value).first

        try:
            await locator.wait_for(state="visible", timeout=max(timeout_ms, 1))
        except PlaywrightError:
            logger.debug(f"Not found within {timeout_ms}ms: {spec.describe()}")
            return None
        return locator

    async def click(self, handle: Any) -> None:
        try:
            await handle.click()
        except PlaywrightError as e:
            raise BrowserError(f"Click failed: {e}", url=self.url, cause=e) from e

    async def check(self, handle: Any) -> None:
        try:
            await handle.check()
        except PlaywrightError as e:
            raise BrowserError(f"Check failed: {e}", url=self.url, cause=e) from e

    async def fill(self, selector: str, value: str, clear_first: bool = True) -> None:
        try:
            if clear_first:
                await self.page.fill(selector, "")
            await self.page.fill(selector, value)
        except PlaywrightError as e:
            raise BrowserError(f"Fill failed for {selector}: {e}", url=self.url, cause=e) from e

    async def dispatch_click(self, container_selector: str, text: str) -> bool:
        try:
            return bool(await self.page.evaluate(DISPATCH_CLICK_SCRIPT, [container_selector, text]))
        except PlaywrightError as e:
            logger.debug(f"In-page click failed: {e}")
            return False

    async def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_url(pattern, timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def wait_for_selector(
        self,
        selector: str,
        timeout_ms: int,
        state: str = "visible",
    ) -> bool:
        try:
            await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)  # type: ignore[arg-type]
            return True
        except PlaywrightError:
            return False

    async def wait_for_load(self, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def wait_for_text_change(self, selector: str, previous: str, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_function(
                TEXT_CHANGED_SCRIPT,
                arg=[selector, previous],
                timeout=timeout_ms,
            )
            return True
        except PlaywrightError as e:
            logger.debug(f"Content change not detected: {e}")
            return False

    async def text_of(self, selector: str, timeout_ms: int) -> str:
        try:
            text = await self.page.locator(selector).first.text_content(timeout=max(timeout_ms, 1))
        except PlaywrightError:
            return ""
        return (text or "").strip()

    async def pause(self, ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    async def close(self) -> None:
        """Close browser and clean up resources."""
        if self._context is not None:
            await self._context.close()
            self._context = None
            self._page = None

        if self._browser is not None:
            await self._browser.close()
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Playwright backend closed")
