"""
Structural matchers for search listing pages.

Each matcher recognizes one way the portal lays out search results and
turns it into field bags (plain dicts keyed by GrantRecord attribute
names). The listing extractor tries them in priority order and uses the
first one that produces anything.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from lxml import html as lxml_html
from lxml.html import HtmlElement

from ..normalize.text import normalize_whitespace


# Definition-list labels on listing cards and the fields they fill
LISTING_LABELS = {
    "status": "status",
    "maximum value": "max_amount",
    "current deadline": "deadline",
}

# Extra header labels seen on the tabular layout
TABLE_HEADER_LABELS = {
    **LISTING_LABELS,
    "funder": "funder",
    "provider": "funder",
    "deadline": "deadline",
    "amount": "max_amount",
}


@dataclass
class PageContext:
    """Parsed snapshot of one listing page."""

    tree: HtmlElement
    detail_link_fragment: str

    @classmethod
    def from_html(cls, html: str, detail_link_fragment: str) -> "PageContext":
        tree = lxml_html.fromstring(html or "<html></html>")
        return cls(tree=tree, detail_link_fragment=detail_link_fragment)

    @property
    def detail_link_selector(self) -> str:
        return f'a[href*="{self.detail_link_fragment}"]'


def element_text(element: HtmlElement | None) -> str:
    """Whitespace-normalized text content of an element."""
    if element is None:
        return ""
    return normalize_whitespace(element.text_content())


def next_element(element: HtmlElement) -> HtmlElement | None:
    """Next sibling that is an element (skipping comments)."""
    for sibling in element.itersiblings():
        if isinstance(sibling.tag, str):
            return sibling
    return None


def label_key(text: str) -> str:
    return normalize_whitespace(text).rstrip(":").strip().lower()


def definition_fields(container: HtmlElement, labels: dict[str, str]) -> dict[str, str]:
    """Read dt/dd pairs inside container for the known labels."""
    found: dict[str, str] = {}
    for term in container.cssselect("dt"):
        field_name = labels.get(label_key(element_text(term)))
        if field_name is None or field_name in found:
            continue
        found[field_name] = element_text(next_element(term))
    return found


def link_fields(link: HtmlElement) -> dict[str, str]:
    return {"title": element_text(link), "link": (link.get("href") or "").strip()}


# =============================================================================
# Matchers
# =============================================================================


class Matcher(ABC):
    """One recognizable listing layout."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Matcher identifier, for logs."""
        pass

    @abstractmethod
    def try_extract(self, context: PageContext) -> list[dict[str, str]]:
        """Return one field bag per candidate record, empty if the layout is absent."""
        pass


class ListItemMatcher(Matcher):
    """Result cards rendered as list items under main.

    Each card holds a title link to the scheme page, the funder in the
    paragraph after the card heading, and a definition list with status,
    maximum value and deadline.
    """

    @property
    def name(self) -> str:
        return "list_item"

    def try_extract(self, context: PageContext) -> list[dict[str, str]]:
        bags = []
        for item in context.tree.cssselect("main li"):
            links = item.cssselect(context.detail_link_selector)
            if not links:
                continue

            bag = link_fields(links[0])
            funders = item.cssselect("h3 + p")
            bag["funder"] = element_text(funders[0]) if funders else ""
            bag.update(definition_fields(item, LISTING_LABELS))
            bags.append(bag)
        return bags


class SchemeRowMatcher(Matcher):
    """Results rendered as table rows with a scheme class."""

    @property
    def name(self) -> str:
        return "scheme_row"

    def try_extract(self, context: PageContext) -> list[dict[str, str]]:
        bags = []
        for row in context.tree.cssselect('tr[class*="scheme"]'):
            links = row.cssselect(context.detail_link_selector)
            if not links:
                continue

            bag = link_fields(links[0])
            headers = self._headers_for(row)
            for index, cell in enumerate(row.cssselect("td")):
                if index >= len(headers):
                    break
                field_name = TABLE_HEADER_LABELS.get(headers[index])
                if field_name and field_name not in bag:
                    bag[field_name] = element_text(cell)

            for field_name, value in definition_fields(row, LISTING_LABELS).items():
                bag.setdefault(field_name, value)
            bags.append(bag)
        return bags

    def _headers_for(self, row: HtmlElement) -> list[str]:
        """Normalized header labels of the table holding row."""
        for table in row.iterancestors("table"):
            cells = table.cssselect("thead th")
            if not cells:
                first_row = table.cssselect("tr")
                cells = first_row[0].cssselect("th") if first_row else []
            return [label_key(element_text(cell)) for cell in cells]
        return []


class DetailLinkScanMatcher(Matcher):
    """Last resort: every scheme link on the page, titles only.

    Layouts that repeat a link (title and "read more") produce the same
    href twice on one page; repeats are collapsed.
    """

    @property
    def name(self) -> str:
        return "detail_link_scan"

    def try_extract(self, context: PageContext) -> list[dict[str, str]]:
        bags = []
        seen: set[str] = set()
        for link in context.tree.cssselect(context.detail_link_selector):
            bag = link_fields(link)
            # Image links carry no text; the titled repeat is the record
            if not bag["title"] or bag["link"] in seen:
                continue
            seen.add(bag["link"])
            bags.append(bag)
        return bags


def default_matchers() -> list[Matcher]:
    """Matchers in priority order."""
    return [ListItemMatcher(), SchemeRowMatcher(), DetailLinkScanMatcher()]
