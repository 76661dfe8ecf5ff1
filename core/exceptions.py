# core/exceptions.py
"""Exception types shared across the generation pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any


class MythForgeError(Exception):
    """Base class for errors raised by the generation pipeline."""


class ProviderError(MythForgeError):
    """Raised by the LLM client when a completion request fails.

    ``response_text`` carries whatever text was received before the failure
    so callers can salvage a partially streamed response.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        details: Any = None,
        response_text: str = "",
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.details = details
        self.response_text = response_text


class ContextOverflowError(ProviderError):
    """The requested output budget does not fit the model's context window."""


class ProviderFailure(MythForgeError):
    """Fatal provider error after the client exhausted its retry budget."""

    def __init__(self, cause: ProviderError) -> None:
        super().__init__(f"LLM provider '{cause.provider}' failed: {cause}")
        self.cause = cause


class ParseFailure(MythForgeError):
    """No usable section could be salvaged from a response."""


class InvalidTransitionError(MythForgeError):
    """The orchestrator was asked to move between unconnected phases."""


class GenerationIssue(str, Enum):
    """Non-fatal conditions recorded on a generation result."""

    INCOMPLETE_RESPONSE = "incomplete_response"
    LOW_FIDELITY = "low_fidelity"
    TIMEOUT = "timeout"
    UNCREATIVE = "uncreative"
    PARTIAL_ACCEPTED = "partial_accepted"
