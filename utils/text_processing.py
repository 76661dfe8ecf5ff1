# utils/text_processing.py
"""Small text helpers shared by validation, merging and prompt building."""

import re

__all__ = [
    "normalize_key",
    "normalize_text_for_matching",
    "truncate_preview",
    "word_count",
]


def word_count(text: str | None) -> int:
    """Return the number of whitespace-separated non-empty tokens."""
    if not text:
        return 0
    return len(text.split())


def normalize_key(value: object) -> str:
    """Return the identity used to deduplicate list entries."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip().casefold()


def truncate_preview(text: str | None, limit: int, marker: str = "...") -> str:
    """Cut ``text`` to ``limit`` characters, appending ``marker`` when cut."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + marker


def normalize_text_for_matching(text: str) -> str:
    """Normalize text for more robust matching."""
    if not text:
        return ""
    text = text.lower()
    text = re.sub(r"[’']s\b", "", text)
    text = re.sub(r"[^\w\s-]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text
