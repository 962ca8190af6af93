"""
Text cleanup for values captured from portal pages.

Listing and detail pages mix markup, HTML entities and layout whitespace
into the text we capture. sanitize reduces a captured value to a single
clean line.
"""

from __future__ import annotations

import re


TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")

# Named entities the portal emits
ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&ndash;": "–",
    "&mdash;": "—",
    "&pound;": "£",
}
ENTITY_PATTERN = re.compile("|".join(re.escape(entity) for entity in ENTITIES))


def normalize_whitespace(text: str | None) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def decode_entities(text: str) -> str:
    """Decode the fixed entity set in a single left-to-right pass."""
    return ENTITY_PATTERN.sub(lambda match: ENTITIES[match.group(0)], text)


def sanitize(text: str | None) -> str:
    """Strip markup, decode entities, collapse whitespace and trim.

    Tag stripping and entity decoding repeat until the text stops
    changing, so double-encoded input such as "&amp;lt;b&amp;gt;" is
    fully reduced and sanitize(sanitize(x)) == sanitize(x).

    Example:
        >>> sanitize("<b>A&amp;B</b>   C")
        'A&B C'
    """
    if not text:
        return ""

    previous = None
    while text != previous:
        previous = text
        text = decode_entities(TAG_PATTERN.sub("", text))

    return normalize_whitespace(text)


def truncate(text: str, limit: int) -> str:
    """Cut text to at most limit characters."""
    return text[:limit] if len(text) > limit else text
