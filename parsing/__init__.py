# parsing/__init__.py
"""Resilient parsing of structured model output."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from parsing.brace_scanner import (
    complete_truncated_object,
    find_object_start,
    isolate_object,
)
from parsing.repair import repair_json_text

logger = structlog.get_logger(__name__)

__all__ = [
    "ParseError",
    "ParseOutcome",
    "ParseStrategy",
    "parse_structured_text",
]


class ParseError(Exception):
    """Custom exception for parsing errors."""


class ParseStrategy(str, Enum):
    DIRECT = "direct"
    BRACE_ISOLATION = "brace_isolation"
    REPAIR = "repair"
    REPAIRED_ISOLATION = "repaired_isolation"
    TRUNCATION = "truncation"


@dataclass
class ParseOutcome:
    data: dict[str, Any]
    strategy: ParseStrategy


def _loads_object(text: str | None, strict: bool = True) -> dict[str, Any] | None:
    if not text:
        return None
    try:
        value = json.loads(text, strict=strict)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_structured_text(text: str, allow_truncation: bool = False) -> ParseOutcome:
    """Parse the single top-level object contained in ``text``.

    Strategies are tried in order and the first success wins: a direct
    parse, isolation of the first balanced object, repair of common
    malformations, and isolation again on the repaired text. With
    ``allow_truncation`` a cut-off object is closed as a last resort.

    Raises ``ParseError`` when every strategy fails.
    """
    if not text or not text.strip():
        raise ParseError("Empty response text")
    stripped = text.strip()

    data = _loads_object(stripped)
    if data is not None:
        return ParseOutcome(data, ParseStrategy.DIRECT)

    data = _loads_object(isolate_object(stripped))
    if data is not None:
        logger.debug("Parsed response after brace isolation.")
        return ParseOutcome(data, ParseStrategy.BRACE_ISOLATION)

    # Narration before the object is left out of the repair; an apostrophe in
    # it would otherwise open a single-quoted string that swallows the JSON.
    start = find_object_start(stripped)
    repair_inputs = [stripped[start:], stripped] if start > 0 else [stripped]
    repaired_texts = [repair_json_text(candidate) for candidate in repair_inputs]
    repaired = repaired_texts[0]

    for candidate in repaired_texts:
        data = _loads_object(candidate, strict=False)
        if data is not None:
            logger.debug("Parsed response after repair.")
            return ParseOutcome(data, ParseStrategy.REPAIR)

    for candidate in repaired_texts:
        data = _loads_object(isolate_object(candidate), strict=False)
        if data is not None:
            logger.debug("Parsed response after repair and brace isolation.")
            return ParseOutcome(data, ParseStrategy.REPAIRED_ISOLATION)

    if allow_truncation:
        data = _loads_object(complete_truncated_object(repaired), strict=False)
        if data is not None:
            logger.info(
                "Parsed truncated response by closing open structures.",
                length=len(stripped),
            )
            return ParseOutcome(data, ParseStrategy.TRUNCATION)

    raise ParseError(
        f"No parse strategy succeeded for response of {len(stripped)} chars: "
        f"{stripped[:200]!r}"
    )
