"""Normalization of captured text."""

from .text import decode_entities, normalize_whitespace, sanitize, truncate

__all__ = [
    "decode_entities",
    "normalize_whitespace",
    "sanitize",
    "truncate",
]
