# orchestration/streaming.py
"""Turns raw streamed fragments into short, readable progress snippets.

Model output arrives as JSON in arbitrary fragments. The aggregator buffers
them and, once a paragraph break appears, the emit interval elapses or the
buffer grows too long, emits the last few complete sentences. Incomplete
trailing text stays buffered for the next snippet.
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable

import structlog

from config import settings

logger = structlog.get_logger(__name__)

_SENTENCE_END = re.compile(r"[.!?…][\"'”’]?(?=\s|$)")
_SENTENCE = re.compile(r"[^.!?…]*[.!?…]+[\"'”’]?")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_JSON_MARKERS = re.compile(r"[{}\[\]]|\"\s*:")
_PREFERRED_KEYS = ("target", "description", "text")
_QUOTED_VALUE = re.compile(r'"((?:[^"\\]|\\.){12,})"')
_SYMBOL = re.compile(r"[^\w\s.,;:!?'\"’“”…()-]")
MAX_SYMBOL_RATIO = 0.2


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value.replace("\\n", " ").replace('\\"', '"')


def format_for_display(text: str) -> str:
    """Render a fragment of streamed JSON as prose.

    Values of ``target``, ``description`` or ``text`` keys are preferred,
    then any quoted value of twelve or more characters. Returns an empty
    string when nothing readable remains.
    """
    if _JSON_MARKERS.search(text):
        readable = ""
        for key in _PREFERRED_KEYS:
            match = re.search(rf'"{key}"\s*:\s*"((?:[^"\\]|\\.)*)', text)
            if match and match.group(1).strip():
                readable = _unescape(match.group(1))
                break
        else:
            match = _QUOTED_VALUE.search(text)
            if match:
                readable = _unescape(match.group(1))
        text = readable
    text = text.strip()
    if not text:
        return ""
    if len(_SYMBOL.findall(text)) / len(text) > MAX_SYMBOL_RATIO:
        return ""
    return text


def sanitize_sentence(text: str) -> str:
    """Collapse whitespace and cut anything after the last sentence end."""
    text = re.sub(r"\s+", " ", text).strip()
    last_end = None
    for last_end in _SENTENCE_END.finditer(text):
        pass
    if last_end is not None:
        text = text[: last_end.end()]
    return text.lstrip("-,;: ").strip()


class StreamingAggregator:
    """Buffers streamed fragments and emits sentence-bounded snippets."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        interval: float | None = None,
        max_buffer_chars: int | None = None,
        sentences_per_snippet: int | None = None,
    ) -> None:
        self.clock = clock
        self.interval = (
            interval if interval is not None else settings.STREAM_EMIT_INTERVAL_SECONDS
        )
        self.max_buffer_chars = max_buffer_chars or settings.STREAM_MAX_BUFFER_CHARS
        self.sentences_per_snippet = (
            sentences_per_snippet or settings.STREAM_SENTENCES_PER_SNIPPET
        )
        self.buffer = ""
        self._last_emit = self.clock()

    def reset(self) -> None:
        self.buffer = ""
        self._last_emit = self.clock()

    def _should_emit(self) -> bool:
        if _PARAGRAPH_BREAK.search(self.buffer):
            return True
        if len(self.buffer) > self.max_buffer_chars:
            return True
        return self.clock() - self._last_emit >= self.interval

    def feed(self, fragment: str) -> str | None:
        """Add ``fragment``; return a snippet when one is due."""
        if not fragment:
            return None
        self.buffer += fragment
        if not self._should_emit():
            return None

        last_end = None
        for last_end in _SENTENCE_END.finditer(self.buffer):
            pass
        if last_end is None:
            return None

        completed = self.buffer[: last_end.end()]
        self.buffer = self.buffer[last_end.end() :].lstrip()
        self._last_emit = self.clock()

        sentences = [s.strip() for s in _SENTENCE.findall(completed) if s.strip()]
        recent = " ".join(sentences[-self.sentences_per_snippet :])
        snippet = sanitize_sentence(format_for_display(recent))
        return snippet or None
