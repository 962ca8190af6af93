"""
Long-form field capture from scheme detail pages.

Detail pages have no fixed structure. Sections are found by scanning
heading-like elements for a label and taking the element right after
the matching heading.
"""

from __future__ import annotations

from dataclasses import dataclass

from lxml import html as lxml_html
from lxml.html import HtmlElement

from ..config.models import EnrichmentConfig
from ..normalize.text import truncate
from .matchers import element_text, next_element


HEADING_SELECTOR = "h2, h3, h4, dt, strong"
EXCERPT_SELECTOR = "main, .content, article, #content"
AREA_TAG_SELECTOR = '.tag, .category, [class*="area"], [class*="tag"]'

# Alternatives per field, tried in order
DESCRIPTION_LABELS = ("description", "about", "summary", "overview")
ELIGIBILITY_LABELS = ("eligibility", "who can apply", "eligible")
HOW_TO_APPLY_LABELS = ("how to apply", "application", "apply")
CONTACT_LABELS = ("contact", "enquiries")


@dataclass
class DetailFields:
    """Raw, truncated captures from one detail page (not yet sanitized)."""

    description: str = ""
    eligibility: str = ""
    how_to_apply: str = ""
    contact_info: str = ""
    area_of_work: str = ""
    additional_info: str = ""


def raw_text(element: HtmlElement | None) -> str:
    if element is None:
        return ""
    return (element.text_content() or "").strip()


class DetailExtractor:
    """Heading-driven lookup over a detail page snapshot."""

    def __init__(self, limits: EnrichmentConfig | None = None):
        self.limits = limits or EnrichmentConfig()

    def extract(self, html: str) -> DetailFields:
        tree = lxml_html.fromstring(html or "<html></html>")
        headings = tree.cssselect(HEADING_SELECTOR)

        return DetailFields(
            description=truncate(
                self.text_after_heading(headings, DESCRIPTION_LABELS),
                self.limits.description_max,
            ),
            eligibility=truncate(
                self.text_after_heading(headings, ELIGIBILITY_LABELS),
                self.limits.eligibility_max,
            ),
            how_to_apply=truncate(
                self.text_after_heading(headings, HOW_TO_APPLY_LABELS),
                self.limits.how_to_apply_max,
            ),
            contact_info=truncate(
                self.text_after_heading(headings, CONTACT_LABELS),
                self.limits.contact_max,
            ),
            area_of_work=", ".join(self.area_tags(tree)),
            additional_info=truncate(self.excerpt(tree), self.limits.excerpt_max),
        )

    def text_after_heading(self, headings: list[HtmlElement], labels: tuple[str, ...]) -> str:
        """Content following the first heading containing a label.

        Labels are tried in order; a label whose matching heading is
        followed by empty content falls through to the next label.
        """
        for label in labels:
            text = self._lookup(headings, label)
            if text:
                return text
        return ""

    def _lookup(self, headings: list[HtmlElement], label: str) -> str:
        for heading in headings:
            if label not in element_text(heading).lower():
                continue
            following = next_element(heading)
            if following is not None:
                return raw_text(following)
        return ""

    def area_tags(self, tree: HtmlElement) -> list[str]:
        """Area-of-work values from tag elements and "area" definition terms."""
        values: list[str] = []

        for element in tree.cssselect(AREA_TAG_SELECTOR):
            text = raw_text(element)
            if text and len(text) < self.limits.area_tag_max:
                values.append(text)

        for term in tree.cssselect("dt"):
            if "area" not in element_text(term).lower():
                continue
            definition = next_element(term)
            if definition is not None and definition.tag == "dd":
                values.extend(part.strip() for part in raw_text(definition).split(",") if part.strip())

        return list(dict.fromkeys(values))

    def excerpt(self, tree: HtmlElement) -> str:
        """Leading text of the main content region, or of the whole body if that is blank."""
        regions = tree.cssselect(EXCERPT_SELECTOR)
        if regions:
            text = regions[0].text_content() or ""
            if text.strip():
                return text
        bodies = tree.cssselect("body")
        return (bodies[0] if bodies else tree).text_content() or ""
