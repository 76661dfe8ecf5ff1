# processing/runic.py
"""Latin-to-rune transliteration for generated vocabulary."""

from __future__ import annotations

_RUNE_MAP = {
    "a": "ᚨ", "b": "ᛒ", "c": "ᚲ", "d": "ᛞ", "e": "ᛖ", "f": "ᚠ", "g": "ᚷ",
    "h": "ᚺ", "i": "ᛁ", "j": "ᛃ", "k": "ᚲ", "l": "ᛚ", "m": "ᛗ", "n": "ᚾ",
    "o": "ᛟ", "p": "ᛈ", "q": "ᛩ", "r": "ᚱ", "s": "ᛊ", "t": "ᛏ", "u": "ᚢ",
    "v": "ᚹ", "w": "ᚹ", "x": "ᛪ", "y": "ᛦ", "z": "ᛉ",
}
_TABLE = str.maketrans(_RUNE_MAP)


def to_runic(word: str) -> str:
    """Transliterate ``word`` letter by letter; other characters pass through."""
    return word.lower().translate(_TABLE)
