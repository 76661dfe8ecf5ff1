# parsing/section_extractor.py
"""Salvage individually well-formed top-level sections from a broken response."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

import structlog

from parsing.brace_scanner import find_matching_close, find_object_start, find_string_end
from parsing.repair import repair_json_text

logger = structlog.get_logger(__name__)

KNOWN_SECTIONS: tuple[str, ...] = (
    "story",
    "entities",
    "worldMap",
    "analysis",
    "socialCode",
    "ancientLanguage",
    "extras",
)

_SCALAR = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|true|false|null")


def _top_level_value_starts(text: str) -> dict[str, int]:
    """Map each key of the outermost object to the index where its value starts."""
    starts: dict[str, int] = {}
    open_idx = find_object_start(text)
    if open_idx < 0:
        return starts
    depth = 0
    i = open_idx
    while i < len(text):
        ch = text[i]
        if ch == '"':
            end = find_string_end(text, i)
            if end is None:
                break
            if depth == 1:
                rest = text[end + 1 :]
                colon = re.match(r"\s*:\s*", rest)
                if colon:
                    key = text[i + 1 : end]
                    starts.setdefault(key, end + 1 + colon.end())
            i = end + 1
            continue
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                break
        i += 1
    return starts


def _fallback_value_start(text: str, name: str) -> int | None:
    match = re.search(rf'"{re.escape(name)}"\s*:\s*', text)
    return match.end() if match else None


def _value_span(text: str, start: int) -> str | None:
    if start >= len(text):
        return None
    ch = text[start]
    if ch in "{[":
        end = find_matching_close(text, start)
        return text[start : end + 1] if end is not None else None
    if ch == '"':
        end = find_string_end(text, start)
        return text[start : end + 1] if end is not None else None
    scalar = _SCALAR.match(text, start)
    return scalar.group(0) if scalar else None


def _parse_section(name: str, span: str) -> Any:
    wrapped = f'{{"{name}": {span}}}'
    try:
        return json.loads(wrapped, strict=False)[name]
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_json_text(wrapped), strict=False)[name]
    except (json.JSONDecodeError, KeyError):
        return None


def extract_sections(
    text: str, sections: Iterable[str] | None = None
) -> dict[str, Any]:
    """Return the subset of top-level sections that parse in isolation.

    ``sections`` restricts the scan to the given section names. Sections
    whose value is unbalanced or malformed are omitted.
    """
    wanted = list(sections) if sections is not None else list(KNOWN_SECTIONS)
    if not text:
        return {}
    starts = _top_level_value_starts(text)
    found: dict[str, Any] = {}
    for name in wanted:
        start = starts.get(name)
        if start is None:
            start = _fallback_value_start(text, name)
        if start is None:
            continue
        span = _value_span(text, start)
        if span is None:
            logger.debug("Section '%s' is unterminated; skipping.", name)
            continue
        value = _parse_section(name, span)
        if value is None:
            logger.debug("Section '%s' failed to parse in isolation.", name)
            continue
        found[name] = value
    logger.info(
        "Section extraction finished.",
        recovered=sorted(found),
        requested=len(wanted),
    )
    return found


def sections_present(text: str) -> set[str]:
    """Return the known section names the response at least attempted."""
    return {
        name for name in KNOWN_SECTIONS if re.search(rf'"{name}"\s*:', text or "")
    }
