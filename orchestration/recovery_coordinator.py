# orchestration/recovery_coordinator.py
"""Regenerates missing or incomplete sections with targeted LLM calls.

Recovery never replaces the whole document. Each attempt asks only for the
sections still short of their thresholds, parses whatever comes back with
every fallback available, and merges the result by key into the working
document. Provider errors end an attempt but never the run.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from config import settings
from core.exceptions import ProviderError
from core.llm_interface import LLMService
from models.myth_models import DOCUMENT_SECTIONS, PartialMythDocument
from models.request_models import Thresholds
from orchestration.models import RecoveryStatus
from orchestration.prompt_builder import build_recovery_prompt
from parsing import ParseError, parse_structured_text
from parsing.repair import repair_json_text
from parsing.section_extractor import extract_sections
from processing.section_merge import merge_partial_documents
from utils.text_processing import truncate_preview
from validation.completeness import CompletenessReport, check_completeness

logger = structlog.get_logger(__name__)

StatusCallback = Callable[[RecoveryStatus], None]

_VOCABULARY_ARRAY = re.compile(r'"vocabulary"\s*:\s*(\[[\s\S]*?\])')


@dataclass
class RecoveryOutcome:
    document: PartialMythDocument
    report: CompletenessReport
    status: RecoveryStatus
    attempts: int = 0


@dataclass
class _Progress:
    document: PartialMythDocument
    report: CompletenessReport
    recovered: list[str] = field(default_factory=list)
    attempts: int = 0


def salvage_vocabulary(text: str) -> list[Any] | None:
    """Pull the ``vocabulary`` array out of otherwise unparsable text."""
    match = _VOCABULARY_ARRAY.search(text)
    if not match:
        return None
    for candidate in (match.group(1), repair_json_text(match.group(1))):
        try:
            items = json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        if isinstance(items, list) and items:
            return items
    return None


def sections_from_response(text: str, targets: Sequence[str]) -> dict[str, Any]:
    """Recover whichever of ``targets`` can be read from a recovery response."""
    try:
        outcome = parse_structured_text(text, allow_truncation=True)
        data = outcome.data if isinstance(outcome.data, dict) else {}
        logger.debug("Recovery response parsed.", strategy=outcome.strategy.value)
    except ParseError:
        data = extract_sections(text, [*targets, "socialCode"])
        logger.debug("Recovery response salvaged by section.", sections=sorted(data))

    if len(targets) == 1 and targets[0] not in data and data:
        # A lone section is sometimes returned without its wrapping key.
        if not set(data) & set(DOCUMENT_SECTIONS):
            data = {targets[0]: data}

    language = data.get("ancientLanguage")
    if "ancientLanguage" in targets and not (
        isinstance(language, dict) and language.get("vocabulary")
    ):
        vocabulary = salvage_vocabulary(text)
        if vocabulary:
            logger.info(
                "Recovered %d vocabulary entries with the fallback pattern.",
                len(vocabulary),
            )
            base = language if isinstance(language, dict) else {}
            data["ancientLanguage"] = {**base, "vocabulary": vocabulary}

    allowed = set(targets)
    if "analysis" in allowed:
        allowed.add("socialCode")
    return {key: value for key, value in data.items() if key in allowed}


def _status(progress: _Progress) -> RecoveryStatus:
    return RecoveryStatus(
        recovered_sections=list(progress.recovered),
        missing_sections=list(progress.report.missing),
        incomplete_sections=list(progress.report.incomplete),
        is_recovered=progress.report.is_acceptable,
    )


class RecoveryCoordinator:
    """Runs bounded recovery attempts for a scoped set of sections."""

    def __init__(
        self,
        llm: LLMService,
        thresholds: Thresholds,
        notify: StatusCallback | None = None,
        max_retries: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.llm = llm
        self.thresholds = thresholds
        self.notify = notify
        self.max_retries = (
            max_retries if max_retries is not None else settings.RECOVERY_MAX_RETRIES
        )
        self.timeout = timeout if timeout is not None else settings.RECOVERY_TIMEOUT_SECONDS

    async def _request(self, prompt: str) -> str:
        try:
            return await self.llm.generate(
                prompt,
                temperature=settings.GENERATION_TEMPERATURE,
                max_output_tokens=settings.RECOVERY_MAX_TOKENS,
            )
        except ProviderError as exc:
            logger.warning(
                "Recovery call failed: %s",
                exc,
                partial_chars=len(exc.response_text),
            )
            return exc.response_text

    async def _attempts(
        self,
        progress: _Progress,
        scope: Sequence[str],
        forced: Sequence[str] | None,
    ) -> None:
        for attempt in range(1, self.max_retries + 1):
            targets = list(forced) if forced and attempt == 1 else []
            if not targets:
                if progress.report.is_complete:
                    return
                targets = progress.report.sections_to_recover
            progress.attempts = attempt
            logger.info(
                "Recovery attempt %d/%d.",
                attempt,
                self.max_retries,
                sections=targets,
            )
            prompt = build_recovery_prompt(
                progress.document,
                targets,
                self.thresholds,
                [s.describe() for s in progress.report.shortfalls if s.section in targets],
            )
            text = await self._request(prompt)
            if not text.strip():
                logger.warning("Recovery attempt %d returned no text.", attempt)
                continue

            sections = sections_from_response(text, targets)
            if not sections:
                logger.warning(
                    "Recovery attempt %d yielded no usable sections.",
                    attempt,
                    preview=truncate_preview(text, settings.RESPONSE_PREVIEW_CHARS),
                )
                continue

            update = PartialMythDocument.from_record(sections)
            progress.document = merge_partial_documents(progress.document, update, targets)
            for name in update.present_sections():
                if name in targets and name not in progress.recovered:
                    progress.recovered.append(name)
            progress.report = check_completeness(progress.document, self.thresholds, scope)
            if self.notify:
                self.notify(_status(progress))
            if progress.report.is_acceptable:
                return

    async def recover(
        self,
        working: PartialMythDocument,
        scope: Sequence[str],
        report: CompletenessReport | None = None,
        sections: Sequence[str] | None = None,
    ) -> RecoveryOutcome:
        """Recover the sections of ``scope`` that fall short.

        ``sections`` forces the first attempt to regenerate exactly those
        sections even when they already pass their thresholds. The whole
        run is bounded by the recovery timeout; on expiry the best document
        reached so far is returned.
        """
        progress = _Progress(
            document=working,
            report=report or check_completeness(working, self.thresholds, scope),
        )
        if progress.report.is_acceptable and not sections:
            return RecoveryOutcome(working, progress.report, _status(progress))

        try:
            await asyncio.wait_for(self._attempts(progress, scope, sections), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Recovery timed out after %.0fs; keeping %d recovered section(s).",
                self.timeout,
                len(progress.recovered),
            )

        status = _status(progress)
        if status.is_recovered:
            logger.info("Recovery succeeded.", recovered=status.recovered_sections)
        else:
            logger.warning(
                "Recovery left sections unresolved.",
                missing=status.missing_sections,
                incomplete=status.incomplete_sections,
            )
        return RecoveryOutcome(progress.document, progress.report, status, progress.attempts)
