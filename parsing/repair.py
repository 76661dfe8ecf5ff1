# parsing/repair.py
"""Repairs for the malformations models most often produce in JSON output."""

from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WORD = re.compile(r"[^\W\d][\w-]*")
_SMART_OPEN = "“”„"
_SMART_CLOSE = "”“"


def _last_significant(out: list[str]) -> str:
    for piece in reversed(out):
        stripped = piece.strip()
        if stripped:
            return stripped[-1]
    return ""


def _next_significant(text: str, start: int) -> str:
    for i in range(start, len(text)):
        if not text[i].isspace():
            return text[i]
    return ""


def _read_quoted(text: str, start: int, closers: str) -> tuple[str, int]:
    """Read a string opened at ``start`` and return it re-quoted with ASCII quotes."""
    buf: list[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            buf.append(text[i : i + 2])
            i += 2
            continue
        if ch in closers:
            return '"' + "".join(buf) + '"', i + 1
        buf.append('\\"' if ch == '"' else ch)
        i += 1
    return '"' + "".join(buf), i


def repair_json_text(text: str) -> str:
    """Apply common-malformation repairs outside of string literals.

    Handles trailing commas before closing brackets, bare object keys,
    single-quoted strings and typographic double quotes used as
    delimiters. Stray control characters are removed everywhere.
    """
    text = _CONTROL_CHARS.sub("", text)
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            end = i + 1
            escape = False
            while end < n:
                if escape:
                    escape = False
                elif text[end] == "\\":
                    escape = True
                elif text[end] == '"':
                    break
                end += 1
            out.append(text[i : end + 1])
            i = end + 1
        elif ch in _SMART_OPEN:
            quoted, i = _read_quoted(text, i, _SMART_CLOSE + '"')
            out.append(quoted)
        elif ch == "'":
            quoted, i = _read_quoted(text, i, "'")
            out.append(quoted)
        elif ch == ",":
            if _next_significant(text, i + 1) not in ("}", "]"):
                out.append(ch)
            i += 1
        else:
            word = _WORD.match(text, i)
            if word is None:
                out.append(ch)
                i += 1
                continue
            token = word.group(0)
            if _last_significant(out) in ("{", ",") and _next_significant(
                text, word.end()
            ) == ":":
                out.append(f'"{token}"')
            else:
                out.append(token)
            i = word.end()
    return "".join(out)
