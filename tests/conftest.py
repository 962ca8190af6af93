"""Shared fixtures: an in-memory funding portal behind the PageSession interface."""

from __future__ import annotations

import asyncio
import fnmatch
import re
from typing import Any, Callable

import pytest
from lxml import html as lxml_html

from grantwatch.core.backends.base import BrowserError, LocatorSpec, NavigationTimeout, PageSession
from grantwatch.core.config import AppConfig, Credentials, TimeoutConfig

BASE_URL = "https://funding.idoxopen4community.co.uk"
USERNAME = "tester@example.org"
PASSWORD = "correct-horse"

HAS_TEXT_PATTERN = re.compile(r'^\s*([\w-]*):has-text\("([^"]*)"\)\s*(.*)$')


# =============================================================================
# Page builders
# =============================================================================


def login_html(cookie_banner: bool = True, error: str = "") -> str:
    banner = (
        '<div id="ccc"><button class="ccc-accept-button" data-action="accept-cookies">Accept</button></div>'
        if cookie_banner
        else ""
    )
    errors = f'<div class="validation-summary-errors"><ul><li>{error}</li></ul></div>' if error else ""
    return f"""
    <html><body>{banner}
      <form>
        {errors}
        <input id="LogOnEmail" type="email">
        <input id="LogOnPassword" type="password">
        <input type="submit" value="Log in" data-action="login">
      </form>
    </body></html>
    """


def home_html() -> str:
    return """
    <html><body><main>
      <h1>Welcome</h1>
      <a href="/bca/Search" data-action="search">Search for funding</a>
    </main></body></html>
    """


def search_form_html(labels: list[str]) -> str:
    boxes = "".join(f'<label><input type="checkbox"> {label}</label>' for label in labels)
    return f"""
    <html><body><main>
      <form>{boxes}<button class="siteSearchFilter" data-action="submit-search">Search</button></form>
    </main></body></html>
    """


def record_item(record_id: int, title: str | None = None) -> str:
    title = f"Grant {record_id}" if title is None else title
    return f"""
      <li>
        <div class="card">
          <h3><a href="/Scheme/View/{record_id}">{title}</a></h3>
          <p>Funder {record_id}</p>
          <dl>
            <dt>Status</dt><dd>Open for Applications</dd>
            <dt>Maximum value</dt><dd>&pound;{record_id},000</dd>
            <dt>Current deadline</dt><dd>31/12/2025</dd>
          </dl>
        </div>
      </li>
    """


def pagination_html(next_page: int | None, style: str = "title") -> str:
    if next_page is None:
        return '<ul class="pagination"><li class="active"><span>1</span></li></ul>'
    if style == "title":
        link = (
            f'<a href="#" title="Click to go to page {next_page} of results" '
            f'data-page="{next_page}">{next_page}</a>'
        )
    elif style == "role":
        link = f'<a href="#" data-page="{next_page}">{next_page}</a>'
    else:
        # Script-only control: no href, so no link role
        link = f'<a onclick="showResults({next_page}, true, \'Y\')" data-page="{next_page}">{next_page}</a>'
    return f'<ul class="pagination"><li>{link}</li></ul>'


def listing_html(
    page: int,
    record_ids: list[int],
    next_page: int | None = None,
    page_count: int | None = None,
    style: str = "title",
) -> str:
    items = "".join(record_item(record_id) for record_id in record_ids)
    info = f"<p>Page {page} of {page_count}</p>" if page_count else ""
    return f"""
    <html><body><main>
      {info}
      <ul class="results">{items}</ul>
      {pagination_html(next_page, style)}
    </main></body></html>
    """


def detail_html(record_id: int) -> str:
    return f"""
    <html><body>
      <nav>Menu</nav>
      <main>
        <h1>Grant {record_id}</h1>
        <h2>Description</h2>
        <p>Supports <b>local</b> projects &amp; groups.</p>
        <h2>Eligibility</h2>
        <p>Registered charities</p>
        <h2>How to apply</h2>
        <p>Apply online</p>
        <h2>Contact</h2>
        <p>grants{record_id}@example.org</p>
        <span class="tag">Community</span>
        <dl><dt>Area of work</dt><dd>Community, Disability</dd></dl>
      </main>
    </body></html>
    """


def page_source_from_list(pages: list[str]) -> Callable[[int], str | None]:
    return lambda number: pages[number - 1] if 1 <= number <= len(pages) else None


def three_page_listing(style: str = "title") -> list[str]:
    return [
        listing_html(1, [1, 2], next_page=2, page_count=3, style=style),
        listing_html(2, [3, 4], next_page=3, page_count=3, style=style),
        listing_html(3, [5, 6], next_page=None, page_count=3, style=style),
    ]


def endless_listing(number: int) -> str:
    return listing_html(number, [number * 2 - 1, number * 2], next_page=number + 1)


# =============================================================================
# Fake session
# =============================================================================


class FakePortalSession(PageSession):
    """In-memory portal: login, search form, scripted pagination, detail pages.

    Elements carry data-action / data-page attributes that tell click()
    what the real portal would do.
    """

    def __init__(
        self,
        listing: Callable[[int], str | None] | None = None,
        detail_pages: dict[str, tuple[int, str]] | None = None,
        filter_labels: list[str] | None = None,
        cookie_banner: bool = True,
        show_login_form: bool = True,
        goto_timeouts: int = 0,
        goto_error: bool = False,
        fill_error: bool = False,
        content_error_page: int | None = None,
    ):
        self.listing = listing or page_source_from_list(three_page_listing())
        self.detail_pages = detail_pages if detail_pages is not None else {
            f"{BASE_URL}/Scheme/View/{record_id}": (200, detail_html(record_id))
            for record_id in range(1, 7)
        }
        self.filter_labels = filter_labels if filter_labels is not None else ["Open for Applications", "Community"]
        self.cookie_banner = cookie_banner
        self.show_login_form = show_login_form
        self.goto_timeouts = goto_timeouts
        self.goto_error = goto_error
        self.fill_error = fill_error
        self.content_error_page = content_error_page

        self._url = "about:blank"
        self._html = "<html><body></body></html>"
        self.filled: dict[str, str] = {}
        self.checked: list[str] = []
        self.detail_visits: list[str] = []
        self.listing_page = 0
        self.paused_ms = 0
        self.entered = False
        self.closed = False

    # Session plumbing

    @property
    def name(self) -> str:
        return "fake"

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self) -> "FakePortalSession":
        self.entered = True
        return self

    async def close(self) -> None:
        self.closed = True

    def _show(self, url: str, html: str) -> None:
        self._url = url
        self._html = html

    def _tree(self) -> Any:
        return lxml_html.fromstring(self._html)

    def _select(self, selector: str) -> list[Any]:
        tree = self._tree()
        found: list[Any] = []
        for part in selector.split(","):
            match = HAS_TEXT_PATTERN.match(part)
            if match is None:
                found.extend(tree.cssselect(part.strip()))
                continue
            tag, text, rest = match.groups()
            for element in tree.iter(tag or "*"):
                if not isinstance(element.tag, str) or text not in element.text_content():
                    continue
                found.extend(element.cssselect(rest) if rest else [element])
        return found

    @staticmethod
    def _text(element: Any) -> str:
        return " ".join(element.text_content().split())

    # Navigation

    async def goto(self, url: str, timeout_ms: int) -> int:
        await asyncio.sleep(0)
        if self.goto_timeouts > 0:
            self.goto_timeouts -= 1
            raise NavigationTimeout(f"Navigation timeout: {url}", url=url)
        if self.goto_error:
            raise BrowserError(f"net::ERR_CONNECTION_RESET at {url}", url=url)

        if url == f"{BASE_URL}/bca":
            self._show(url, login_html(self.cookie_banner) if self.show_login_form else home_html())
            return 200

        self.detail_visits.append(url)
        status, html = self.detail_pages.get(url, (404, "<html><body><h1>Not found</h1></body></html>"))
        self._show(url, html)
        return status

    async def content(self) -> str:
        if self.content_error_page is not None and self.listing_page == self.content_error_page:
            raise BrowserError("Execution context was destroyed, most likely because of a navigation")
        return self._html

    # Probes and actions

    async def try_find(self, spec: LocatorSpec, timeout_ms: int) -> Any | None:
        if spec.kind == "role":
            for link in self._tree().cssselect("a[href]"):
                if self._text(link) == spec.name:
                    return link
            return None
        elements = self._select(spec.value)
        return elements[0] if elements else None

    async def click(self, handle: Any) -> None:
        action = handle.get("data-action")
        if action == "accept-cookies":
            self.cookie_banner = False
            self._show(self._url, login_html(cookie_banner=False))
        elif action == "login":
            if self.filled.get("#LogOnEmail") == USERNAME and self.filled.get("#LogOnPassword") == PASSWORD:
                self._show(f"{BASE_URL}/bca/Home", home_html())
            else:
                self._show(self._url, login_html(cookie_banner=False, error="Invalid login attempt"))
        elif action == "search":
            self._show(f"{BASE_URL}/bca/Search", search_form_html(self.filter_labels))
        elif action == "submit-search":
            self._open_listing(1)
        elif handle.get("data-page"):
            self._open_listing(int(handle.get("data-page")))

    def _open_listing(self, number: int) -> None:
        html = self.listing(number)
        if html is not None:
            self.listing_page = number
            self._show(f"{BASE_URL}/bca/Search/Results", html)

    async def check(self, handle: Any) -> None:
        label = next(handle.iterancestors("label"), None)
        self.checked.append(self._text(label) if label is not None else "")

    async def fill(self, selector: str, value: str, clear_first: bool = True) -> None:
        if self.fill_error:
            raise BrowserError(f"Element is not attached to the DOM: {selector}")
        self.filled[selector] = value

    async def dispatch_click(self, container_selector: str, text: str) -> bool:
        for element in self._select(container_selector):
            if self._text(element) == text:
                await self.click(element)
                return True
        return False

    # Waits

    async def wait_for_url(self, pattern: str, timeout_ms: int) -> bool:
        await asyncio.sleep(0)
        return fnmatch.fnmatch(self._url, pattern)

    async def wait_for_selector(self, selector: str, timeout_ms: int, state: str = "visible") -> bool:
        await asyncio.sleep(0)
        present = bool(self._select(selector))
        return not present if state in ("hidden", "detached") else present

    async def wait_for_load(self, timeout_ms: int) -> bool:
        return True

    async def wait_for_text_change(self, selector: str, previous: str, timeout_ms: int) -> bool:
        elements = self._select(selector)
        text = self._text(elements[0]) if elements else ""
        return bool(text) and text != previous

    async def text_of(self, selector: str, timeout_ms: int) -> str:
        elements = self._select(selector)
        return self._text(elements[0]) if elements else ""

    async def pause(self, ms: int) -> None:
        self.paused_ms += ms
        await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username=USERNAME, password=PASSWORD)


@pytest.fixture
def app_config(credentials: Credentials) -> AppConfig:
    """Default config with credentials and a single portal load attempt."""
    return AppConfig(
        credentials=credentials,
        timeouts=TimeoutConfig(portal_load_attempts=1),
    )


@pytest.fixture
def fake_session() -> FakePortalSession:
    return FakePortalSession()


@pytest.fixture
def session_factory(fake_session: FakePortalSession) -> Callable[[AppConfig], FakePortalSession]:
    def factory(config: AppConfig) -> FakePortalSession:
        factory.calls += 1  # type: ignore[attr-defined]
        return fake_session

    factory.calls = 0  # type: ignore[attr-defined]
    return factory
