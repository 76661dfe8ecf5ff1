# orchestration/models.py
"""Shared dataclasses for the generation state machine and its events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from core.exceptions import GenerationIssue
from models.myth_models import MythDocument
from validation.creativity import CreativityReport
from validation.fidelity import FidelityReport


class GenerationPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    REQUESTING = "requesting"
    PARSING = "parsing"
    VALIDATING = "validating"
    AUTO_COMPLETING = "auto-completing"
    FIDELITY_CHECK = "fidelity-check"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


P = GenerationPhase

# Phases reachable from each phase. Any phase may also move to idle or failed.
ALLOWED_TRANSITIONS: dict[GenerationPhase, frozenset[GenerationPhase]] = {
    P.IDLE: frozenset({P.PREPARING}),
    P.PREPARING: frozenset({P.REQUESTING}),
    P.REQUESTING: frozenset({P.PARSING}),
    P.PARSING: frozenset({P.VALIDATING}),
    P.VALIDATING: frozenset(
        {P.AUTO_COMPLETING, P.REQUESTING, P.FIDELITY_CHECK, P.FINALIZING}
    ),
    P.AUTO_COMPLETING: frozenset({P.REQUESTING, P.FIDELITY_CHECK, P.FINALIZING}),
    P.FIDELITY_CHECK: frozenset({P.REQUESTING, P.FINALIZING}),
    P.FINALIZING: frozenset({P.COMPLETE, P.AUTO_COMPLETING}),
    P.COMPLETE: frozenset({P.AUTO_COMPLETING, P.PREPARING}),
    P.FAILED: frozenset({P.PREPARING}),
}


def can_transition(current: GenerationPhase, target: GenerationPhase) -> bool:
    if target in (P.IDLE, P.FAILED):
        return True
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class RecoveryStatus:
    """Progress of section recovery, surfaced to subscribers."""

    recovered_sections: list[str] = field(default_factory=list)
    missing_sections: list[str] = field(default_factory=list)
    incomplete_sections: list[str] = field(default_factory=list)
    is_recovered: bool = False


@dataclass
class GenerationState:
    """Snapshot of the orchestrator exposed to callers.

    ``document`` is only set once the phase is ``complete``. While recovery
    is unresolved the best-effort document waits in ``pending_document``.
    """

    phase: GenerationPhase = GenerationPhase.IDLE
    streaming_text: str = ""
    document: MythDocument | None = None
    pending_document: MythDocument | None = None
    recovery_status: RecoveryStatus | None = None
    error: str | None = None


@dataclass
class GenerationResult:
    """Outcome of one generation run."""

    document: MythDocument
    is_complete: bool
    fidelity: FidelityReport | None = None
    creativity: CreativityReport | None = None
    recovery_status: RecoveryStatus | None = None
    issues: list[GenerationIssue] = field(default_factory=list)
    accepted_partial: bool = False


@dataclass
class StateChanged:
    state: GenerationState


@dataclass
class StreamSnippet:
    text: str


@dataclass
class RecoveryStatusChanged:
    status: RecoveryStatus


GenerationEvent = StateChanged | StreamSnippet | RecoveryStatusChanged
