# parsing/brace_scanner.py
"""String-aware bracket matching over raw model output."""

from __future__ import annotations

import json
import re

_CLOSERS = {"{": "}", "[": "]"}
_DANGLING_KEY = re.compile(r'[{,]\s*"(?:[^"\\]|\\.)*"$')
# Bounds how many comma positions are tried when closing a truncated object.
_MAX_CUT_POINTS = 64


def find_string_end(text: str, start: int) -> int | None:
    """Return the index of the quote closing the string opened at ``start``."""
    escape = False
    for i in range(start + 1, len(text)):
        ch = text[i]
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif ch == '"':
            return i
    return None


def find_matching_close(text: str, start: int) -> int | None:
    """Return the index closing the ``{`` or ``[`` at ``start``.

    Braces inside quoted strings are ignored and escaped quotes do not end a
    string. ``None`` means the bracket is never closed.
    """
    if start < 0 or start >= len(text) or text[start] not in _CLOSERS:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i
    return None


def find_object_start(text: str) -> int:
    """Return the index of the brace that opens the response object, or -1.

    Leading lines that do not open an object are skipped, so narration such
    as ``Here is {your} myth:`` cannot capture the start position.
    """
    offset = 0
    for line in text.splitlines(keepends=True):
        if line.lstrip().startswith("{"):
            return offset + line.index("{")
        offset += len(line)
    return text.find("{")


def isolate_object(text: str) -> str | None:
    """Return the first balanced top-level object in ``text``."""
    start = find_object_start(text)
    if start < 0:
        return None
    end = find_matching_close(text, start)
    if end is None:
        return None
    return text[start : end + 1]


def _close_open_structures(fragment: str, stack: list[str]) -> str:
    fragment = fragment.rstrip()
    if fragment.endswith(","):
        fragment = fragment[:-1].rstrip()
    if fragment.endswith(":"):
        fragment += ' ""'
    elif stack and stack[-1] == "{" and _DANGLING_KEY.search(fragment):
        fragment += ": null"
    return fragment + "".join(_CLOSERS[b] for b in reversed(stack))


def complete_truncated_object(text: str) -> str | None:
    """Close the brackets of an object cut off mid-stream.

    The full text is tried first; after that the text is cut back to each
    preceding comma until a candidate parses. Returns
    the completed JSON text, or ``None`` when nothing parses.
    """
    start = text.find("{")
    if start < 0:
        return None
    stack: list[str] = []
    in_string = False
    escape = False
    cut_points: list[tuple[int, tuple[str, ...]]] = []
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            if not stack:
                return text[start : i + 1]
        elif ch == ",":
            cut_points.append((i, tuple(stack)))

    tail = text[start:]
    if in_string:
        if escape:
            tail = tail[:-1]
        tail += '"'
    candidates = [_close_open_structures(tail, stack)]
    for pos, snapshot in reversed(cut_points[-_MAX_CUT_POINTS:]):
        candidates.append(_close_open_structures(text[start:pos], list(snapshot)))

    for candidate in candidates:
        try:
            json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        return candidate
    return None
