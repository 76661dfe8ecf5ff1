# utils/__init__.py
"""General utility functions for the MythForge generation pipeline."""

from __future__ import annotations

from .logging import setup_logging
from .text_processing import (
    normalize_key,
    normalize_text_for_matching,
    truncate_preview,
    word_count,
)

__all__ = [
    "setup_logging",
    "normalize_key",
    "normalize_text_for_matching",
    "truncate_preview",
    "word_count",
]
