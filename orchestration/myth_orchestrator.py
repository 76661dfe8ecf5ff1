# orchestration/myth_orchestrator.py
"""Drives a mythology generation through its phases.

Phase 1 produces the story and entities, phase 2 the world map, analysis
and ancient language. Every response is parsed with fallbacks, checked
against the thresholds and repaired by targeted recovery before the next
step. Subscribers receive a state snapshot on every transition, streaming
snippets while the model writes and recovery progress.

Each run holds a generation token. Cancelling or starting over bumps the
token, and a run whose token is stale stops touching state at its next
checkpoint even if its provider call completes later.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

import structlog

from config import settings
from core.exceptions import (
    ContextOverflowError,
    GenerationIssue,
    InvalidTransitionError,
    MythForgeError,
    ParseFailure,
    ProviderError,
    ProviderFailure,
)
from core.llm_interface import LLMService, llm_service
from models.myth_models import PartialMythDocument
from models.request_models import GenerationRequest, MythMood, Thresholds
from orchestration.models import (
    GenerationEvent,
    GenerationPhase,
    GenerationResult,
    GenerationState,
    RecoveryStatus,
    RecoveryStatusChanged,
    StateChanged,
    StreamSnippet,
    can_transition,
)
from orchestration.prompt_builder import (
    build_enhanced_retry_prompt,
    build_phase1_prompt,
    build_phase2_prompt,
)
from orchestration.recovery_coordinator import RecoveryCoordinator
from orchestration.streaming import StreamingAggregator
from parsing import ParseError, parse_structured_text
from parsing.section_extractor import extract_sections, sections_present
from processing.finalize import finalize_document
from processing.relationships import HeuristicRelationshipResolver, RelationshipResolver
from processing.section_merge import merge_partial_documents
from utils.logging import bind_run_context, clear_run_context
from utils.text_processing import truncate_preview
from validation.completeness import (
    PHASE_ONE_SECTIONS,
    PHASE_TWO_SECTIONS,
    REQUIRED_SECTIONS,
    CompletenessReport,
    check_completeness,
)
from validation.creativity import check_creativity
from validation.fidelity import FidelityReport, check_fidelity

logger = structlog.get_logger(__name__)

Listener = Callable[[GenerationEvent], None]


class _StaleGeneration(Exception):
    """Raised internally when a run notices it was cancelled or superseded."""


@dataclass
class _Run:
    """Per-run bookkeeping."""

    token: int
    request: GenerationRequest | None
    thresholds: Thresholds
    issues: list[GenerationIssue] = field(default_factory=list)
    recovery_status: RecoveryStatus | None = None
    fidelity: FidelityReport | None = None

    def note(self, issue: GenerationIssue) -> None:
        if issue not in self.issues:
            self.issues.append(issue)


class MythOrchestrator:
    """Coordinates phases, recovery and validation for one caller."""

    def __init__(
        self,
        llm: LLMService | None = None,
        thresholds: Thresholds | None = None,
        resolver: RelationshipResolver | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.llm = llm or llm_service
        self.default_thresholds = thresholds
        self.resolver = resolver or HeuristicRelationshipResolver()
        self.state = GenerationState()
        self.aggregator = StreamingAggregator(clock=clock)
        self._listeners: list[Listener] = []
        self._token = 0
        self._active = False
        self._last_request: GenerationRequest | None = None
        self._working: PartialMythDocument | None = None
        self._last_run: _Run | None = None
        self._last_result: GenerationResult | None = None

    # ------------------------------------------------------------------
    # Subscribers and state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for events; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def is_active(self) -> bool:
        return self._active

    def _emit(self, event: GenerationEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.error("Event listener failed: %s", exc, exc_info=True)

    def _check(self, run: _Run) -> None:
        if run.token != self._token:
            raise _StaleGeneration()

    def _set_state(self, state: GenerationState) -> None:
        self.state = state
        self._emit(StateChanged(replace(state)))

    def _transition(self, run: _Run, phase: GenerationPhase, **changes) -> None:
        self._check(run)
        current = self.state.phase
        if not can_transition(current, phase):
            raise InvalidTransitionError(
                f"Cannot move from '{current.value}' to '{phase.value}'."
            )
        logger.debug("Phase %s -> %s.", current.value, phase.value)
        bind_run_context(phase=phase.value)
        self._set_state(replace(self.state, phase=phase, **changes))

    def _on_recovery_status(self, run: _Run, status: RecoveryStatus) -> None:
        if run.token != self._token:
            return
        run.recovery_status = status
        self.state = replace(self.state, recovery_status=status)
        self._emit(RecoveryStatusChanged(replace(status)))

    def _begin(self, request: GenerationRequest | None, thresholds: Thresholds) -> _Run:
        self._token += 1
        self._active = True
        self.aggregator.reset()
        return _Run(token=self._token, request=request, thresholds=thresholds)

    def _thresholds_for(self, request: GenerationRequest) -> Thresholds:
        return request.thresholds or self.default_thresholds or Thresholds()

    # ------------------------------------------------------------------
    # Public operations

    async def generate_mythology(
        self, request: GenerationRequest
    ) -> GenerationResult | None:
        """Run a full generation for ``request``.

        Returns ``None`` when a generation is already in flight or when this
        run is cancelled. Fatal provider and parse errors move the state to
        ``failed``, then ``idle``, and propagate.
        """
        if self._active:
            logger.warning("Generation already in progress; request ignored.")
            return None

        run = self._begin(request, self._thresholds_for(request))
        bind_run_context(generation=run.token)
        self._last_request = request
        self._working = None
        self.state = GenerationState()
        logger.info(
            "Starting mythology generation %d.",
            run.token,
            mood=request.mood.value,
            customized=[c.value for c in request.customized_categories],
        )
        try:
            return await self._generate(run, request)
        except _StaleGeneration:
            logger.info("Generation %d was cancelled; discarding its results.", run.token)
            return None
        except (ProviderFailure, ParseFailure) as exc:
            self._fail(run, exc)
            raise
        finally:
            clear_run_context()
            if run.token == self._token:
                self._active = False

    def cancel(self) -> None:
        """Abandon the in-flight generation and return to ``idle``."""
        if self._active:
            logger.info("Cancelling generation %d.", self._token)
        self._token += 1
        self._active = False
        self.aggregator.reset()
        self._set_state(GenerationState())

    def reset(self) -> None:
        """Forget everything, including the last request and document."""
        self.cancel()
        self._last_request = None
        self._working = None
        self._last_run = None
        self._last_result = None

    def accept_partial_result(self) -> GenerationResult | None:
        """Promote a pending partial document to ``complete``."""
        pending = self.state.pending_document
        result = self._last_result
        if (
            self.state.phase != GenerationPhase.FINALIZING
            or pending is None
            or result is None
        ):
            logger.warning("No pending partial result to accept.")
            return None
        logger.info("Accepting partial result.", status=self.state.recovery_status)
        self._set_state(
            replace(
                self.state,
                phase=GenerationPhase.COMPLETE,
                document=pending,
                pending_document=None,
                recovery_status=None,
                streaming_text="",
            )
        )
        self._last_result = replace(
            result,
            is_complete=True,
            accepted_partial=True,
            issues=[*result.issues, GenerationIssue.PARTIAL_ACCEPTED],
        )
        return self._last_result

    async def regenerate_sections(
        self, sections: Sequence[str]
    ) -> GenerationResult | None:
        """Regenerate caller-chosen sections of the last document."""
        if self._active:
            logger.warning("Generation in progress; regeneration ignored.")
            return None
        if self._working is None or self.state.phase not in (
            GenerationPhase.COMPLETE,
            GenerationPhase.FINALIZING,
        ):
            logger.warning("No document to regenerate sections for.")
            return None
        unknown = [s for s in sections if s not in REQUIRED_SECTIONS and s != "extras"]
        if unknown:
            raise ValueError(f"Unknown sections: {', '.join(unknown)}")

        thresholds = (
            self._last_run.thresholds
            if self._last_run
            else self.default_thresholds or Thresholds()
        )
        run = self._begin(self._last_request, thresholds)
        bind_run_context(generation=run.token)
        if self._last_run:
            run.fidelity = self._last_run.fidelity
        try:
            self._transition(run, GenerationPhase.AUTO_COMPLETING, pending_document=None)
            outcome = await self._coordinator(run).recover(
                self._working, REQUIRED_SECTIONS, sections=list(sections)
            )
            self._check(run)
            self._working = outcome.document
            run.recovery_status = outcome.status
            return self._finalize(run, outcome.document)
        except _StaleGeneration:
            logger.info("Regeneration %d was cancelled.", run.token)
            return None
        finally:
            clear_run_context()
            if run.token == self._token:
                self._active = False

    async def regenerate_with_mood(self, mood: MythMood) -> GenerationResult | None:
        """Re-run the last request with a different mood."""
        if self._last_request is None:
            logger.warning("No previous request to regenerate with a new mood.")
            return None
        return await self.generate_mythology(self._last_request.with_mood(mood))

    # ------------------------------------------------------------------
    # Pipeline

    def _fail(self, run: _Run, exc: MythForgeError) -> None:
        if run.token != self._token:
            return
        logger.error("Generation %d failed: %s", run.token, exc, exc_info=True)
        self._set_state(GenerationState(phase=GenerationPhase.FAILED, error=str(exc)))
        self._set_state(GenerationState())

    def _coordinator(self, run: _Run) -> RecoveryCoordinator:
        return RecoveryCoordinator(
            self.llm,
            run.thresholds,
            notify=lambda status: self._on_recovery_status(run, status),
        )

    async def _generate(
        self, run: _Run, request: GenerationRequest
    ) -> GenerationResult:
        self._transition(run, GenerationPhase.PREPARING)
        working = await self._phase_one(run, request)
        working = await self._phase_two(run, request, working)
        working = await self._check_fidelity(run, request, working)
        self._working = working
        return self._finalize(run, working)

    async def _phase_one(
        self, run: _Run, request: GenerationRequest
    ) -> PartialMythDocument:
        prompt = build_phase1_prompt(request, run.thresholds)
        self._transition(run, GenerationPhase.REQUESTING)
        raw = await self._request_phase(run, prompt, settings.PHASE_TIMEOUT_SECONDS)

        self._transition(run, GenerationPhase.PARSING)
        record = self._parse_response(raw)
        working = PartialMythDocument.from_record(record)
        if working.is_empty():
            raise ParseFailure(
                "Phase 1 response contained no usable section: "
                + truncate_preview(raw, settings.RESPONSE_PREVIEW_CHARS)
            )

        attempted = sections_present(raw) | set(working.present_sections())
        scope = [*PHASE_ONE_SECTIONS, *(s for s in PHASE_TWO_SECTIONS if s in attempted)]
        self._transition(run, GenerationPhase.VALIDATING)
        report = check_completeness(working, run.thresholds, scope)
        return await self._recover_if_needed(run, working, scope, report)

    async def _phase_two(
        self, run: _Run, request: GenerationRequest, working: PartialMythDocument
    ) -> PartialMythDocument:
        pending = check_completeness(working, run.thresholds, PHASE_TWO_SECTIONS)
        if pending.is_complete:
            logger.info("Phase 1 already produced every phase-2 section; skipping phase 2.")
            return working
        targets = pending.sections_to_recover

        prompt = build_phase2_prompt(request, working, run.thresholds, targets)
        self._transition(run, GenerationPhase.REQUESTING)
        raw = await self._request_phase(run, prompt, settings.PHASE2_TIMEOUT_SECONDS)

        self._transition(run, GenerationPhase.PARSING)
        update = PartialMythDocument.from_record(self._parse_response(raw))
        # Phase 2 never overrides the story or entities from phase 1.
        working = merge_partial_documents(working, update.without("story", "entities"))

        self._transition(run, GenerationPhase.VALIDATING)
        report = check_completeness(working, run.thresholds, PHASE_TWO_SECTIONS)
        return await self._recover_if_needed(run, working, PHASE_TWO_SECTIONS, report)

    async def _recover_if_needed(
        self,
        run: _Run,
        working: PartialMythDocument,
        scope: Sequence[str],
        report: CompletenessReport,
    ) -> PartialMythDocument:
        if report.is_acceptable:
            if report.is_near_complete:
                logger.info(
                    "Accepting near-complete sections without recovery.",
                    shortfalls=[s.describe() for s in report.shortfalls],
                )
            return working
        run.note(GenerationIssue.INCOMPLETE_RESPONSE)
        self._transition(run, GenerationPhase.AUTO_COMPLETING)
        outcome = await self._coordinator(run).recover(working, scope, report)
        self._check(run)
        return outcome.document

    async def _check_fidelity(
        self, run: _Run, request: GenerationRequest, working: PartialMythDocument
    ) -> PartialMythDocument:
        if not request.customized_categories:
            return working
        self._transition(run, GenerationPhase.FIDELITY_CHECK)
        report = check_fidelity(request, working)
        run.fidelity = report
        if report.score >= settings.FIDELITY_RETRY_THRESHOLD:
            return working

        logger.warning(
            "Fidelity %.1f below %.1f; retrying phase 1 with the missing features.",
            report.score,
            settings.FIDELITY_RETRY_THRESHOLD,
        )
        prompt = build_enhanced_retry_prompt(
            request, run.thresholds, report.missing_features
        )
        self._transition(run, GenerationPhase.REQUESTING)
        try:
            raw = await self._request_phase(run, prompt, settings.PHASE_TIMEOUT_SECONDS)
        except ProviderFailure as exc:
            logger.warning("Enhanced retry failed; keeping the original result: %s", exc)
            run.note(GenerationIssue.LOW_FIDELITY)
            self._transition(run, GenerationPhase.PARSING)
            self._transition(run, GenerationPhase.VALIDATING)
            return working

        self._transition(run, GenerationPhase.PARSING)
        retry = PartialMythDocument.from_record(self._parse_response(raw))
        self._transition(run, GenerationPhase.VALIDATING)
        if not (retry.is_present("story") and retry.is_present("entities")):
            logger.warning("Enhanced retry lacked a story or entities; keeping the original.")
            run.note(GenerationIssue.LOW_FIDELITY)
            return working

        candidate = working.replace_sections(story=retry.story, entities=retry.entities)
        retry_report = check_fidelity(request, candidate)
        if retry_report.score > report.score:
            logger.info(
                "Enhanced retry improved fidelity from %.1f to %.1f.",
                report.score,
                retry_report.score,
            )
            run.fidelity = retry_report
            working = candidate
        else:
            logger.info(
                "Enhanced retry scored %.1f, not above %.1f; keeping the original.",
                retry_report.score,
                report.score,
            )
        if run.fidelity.score < settings.FIDELITY_RETRY_THRESHOLD:
            run.note(GenerationIssue.LOW_FIDELITY)
        return working

    def _finalize(self, run: _Run, working: PartialMythDocument) -> GenerationResult:
        self._transition(run, GenerationPhase.FINALIZING)
        self._last_run = run
        report = check_completeness(working, run.thresholds, REQUIRED_SECTIONS)
        creativity = check_creativity(working)
        if not creativity.is_creative:
            run.note(GenerationIssue.UNCREATIVE)
        mood = run.request.mood.value if run.request else None
        document = finalize_document(working, self.resolver, mood=mood)

        status = RecoveryStatus(
            recovered_sections=(
                list(run.recovery_status.recovered_sections) if run.recovery_status else []
            ),
            missing_sections=list(report.missing),
            incomplete_sections=list(report.incomplete),
            is_recovered=report.is_acceptable,
        )
        result = GenerationResult(
            document=document,
            is_complete=report.is_acceptable,
            fidelity=run.fidelity,
            creativity=creativity,
            recovery_status=status,
            issues=list(run.issues),
        )
        self._last_result = result
        if report.is_acceptable:
            self._transition(
                run,
                GenerationPhase.COMPLETE,
                document=document,
                pending_document=None,
                recovery_status=None,
                streaming_text="",
            )
            logger.info("Generation %d complete.", run.token, issues=[i.value for i in run.issues])
        else:
            logger.warning(
                "Generation %d finished with unresolved sections; awaiting acceptance.",
                run.token,
                missing=status.missing_sections,
                incomplete=status.incomplete_sections,
            )
            self._set_state(
                replace(self.state, pending_document=document, recovery_status=status)
            )
            self._emit(RecoveryStatusChanged(replace(status)))
        return result

    # ------------------------------------------------------------------
    # Provider calls and parsing

    def _stream_handler(self, run: _Run, buffer: list[str]) -> Callable[[str], None]:
        def on_chunk(piece: str) -> None:
            if run.token != self._token:
                return
            buffer.append(piece)
            snippet = self.aggregator.feed(piece)
            if snippet:
                self.state = replace(self.state, streaming_text=snippet)
                self._emit(StreamSnippet(snippet))

        return on_chunk

    def _salvage(self, run: _Run, partial: str, reason: str) -> str:
        logger.warning(
            "Salvaging %d characters of partial output after %s.", len(partial), reason
        )
        run.note(GenerationIssue.INCOMPLETE_RESPONSE)
        return partial

    async def _request_phase(self, run: _Run, prompt: str, timeout: float) -> str:
        """Call the model for one phase.

        Context overflows step the output budget down through
        ``OUTPUT_TOKEN_STEPS``. A timeout, or a provider error after enough
        streamed text, yields the partial text instead of failing.
        """
        steps = settings.OUTPUT_TOKEN_STEPS or [settings.MAX_GENERATION_TOKENS]
        overflow_retries = 0
        while True:
            max_tokens = steps[min(overflow_retries, len(steps) - 1)]
            buffer: list[str] = []
            self.aggregator.reset()
            try:
                text = await asyncio.wait_for(
                    self.llm.generate(
                        prompt,
                        temperature=settings.GENERATION_TEMPERATURE,
                        max_output_tokens=max_tokens,
                        on_stream_chunk=self._stream_handler(run, buffer),
                    ),
                    timeout,
                )
                self._check(run)
                return text
            except asyncio.TimeoutError:
                self._check(run)
                run.note(GenerationIssue.TIMEOUT)
                partial = "".join(buffer)
                if len(partial) >= settings.PARTIAL_SALVAGE_MIN_CHARS:
                    return self._salvage(run, partial, f"a {timeout:.0f}s timeout")
                logger.warning(
                    "Phase call timed out after %.0fs with %d characters; discarding them.",
                    timeout,
                    len(partial),
                )
                return ""
            except ContextOverflowError as exc:
                self._check(run)
                overflow_retries += 1
                if overflow_retries > settings.CONTEXT_OVERFLOW_MAX_RETRIES:
                    raise ProviderFailure(exc) from exc
                logger.warning(
                    "Context overflow at %d output tokens; retrying with %d.",
                    max_tokens,
                    steps[min(overflow_retries, len(steps) - 1)],
                )
            except ProviderError as exc:
                self._check(run)
                partial = exc.response_text or "".join(buffer)
                if len(partial) >= settings.PARTIAL_SALVAGE_MIN_CHARS:
                    return self._salvage(run, partial, f"a provider error ({exc})")
                raise ProviderFailure(exc) from exc

    def _parse_response(self, raw: str) -> dict:
        if not raw.strip():
            return {}
        try:
            outcome = parse_structured_text(raw)
        except ParseError as exc:
            logger.warning("Response did not parse (%s); extracting sections.", exc)
            sections = extract_sections(raw)
            logger.info("Section extraction salvaged %d section(s).", len(sections), sections=sorted(sections))
            return sections
        logger.debug("Response parsed.", strategy=outcome.strategy.value)
        return outcome.data if isinstance(outcome.data, dict) else {}
