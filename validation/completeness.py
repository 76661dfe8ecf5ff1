# validation/completeness.py
"""Threshold checks deciding whether a document needs recovery."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from config import settings
from models.myth_models import PartialMythDocument
from models.request_models import Thresholds
from utils.text_processing import word_count

logger = structlog.get_logger(__name__)

PHASE_ONE_SECTIONS: tuple[str, ...] = ("story", "entities")
PHASE_TWO_SECTIONS: tuple[str, ...] = ("worldMap", "analysis", "ancientLanguage")
REQUIRED_SECTIONS: tuple[str, ...] = PHASE_ONE_SECTIONS + PHASE_TWO_SECTIONS


@dataclass
class Shortfall:
    """A measured count against the minimum it must reach."""

    section: str
    metric: str
    actual: int
    minimum: int

    @property
    def deficit(self) -> int:
        return max(0, self.minimum - self.actual)

    def describe(self) -> str:
        return f"{self.section}.{self.metric}: {self.actual}/{self.minimum}"


@dataclass
class CompletenessReport:
    missing: list[str] = field(default_factory=list)
    incomplete: list[str] = field(default_factory=list)
    shortfalls: list[Shortfall] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    is_near_complete: bool = False

    @property
    def is_complete(self) -> bool:
        return not self.missing and not self.incomplete

    @property
    def is_acceptable(self) -> bool:
        return self.is_complete or self.is_near_complete

    @property
    def sections_to_recover(self) -> list[str]:
        return self.missing + [s for s in self.incomplete if s not in self.missing]


def _story_measures(
    doc: PartialMythDocument, thresholds: Thresholds
) -> list[Shortfall]:
    story = doc.story
    text = story.text if doc.is_present("story") else ""
    return [
        Shortfall("story", "characters", len(text.strip()), thresholds.min_story_length),
        Shortfall("story", "words", word_count(text), thresholds.min_story_word_count),
    ]


def _section_measures(
    name: str, doc: PartialMythDocument, thresholds: Thresholds
) -> list[Shortfall]:
    if name == "story":
        return _story_measures(doc, thresholds)
    if name == "entities":
        return [Shortfall("entities", "count", len(doc.entities), thresholds.min_entities)]
    if name == "worldMap":
        return [
            Shortfall(
                "worldMap", "locations", len(doc.world_map.locations), thresholds.min_locations
            )
        ]
    if name == "analysis":
        return [
            Shortfall(
                "analysis",
                "timeline",
                len(doc.analysis.timeline),
                thresholds.min_timeline_events,
            ),
            Shortfall("analysis", "symbols", len(doc.analysis.symbols), 1),
        ]
    if name == "ancientLanguage":
        return [
            Shortfall(
                "ancientLanguage",
                "vocabulary",
                len(doc.ancient_language.vocabulary),
                thresholds.min_vocabulary,
            )
        ]
    return []


def _within_leniency(shortfall: Shortfall, thresholds: Thresholds) -> bool:
    if shortfall.section == "story" and shortfall.metric == "words":
        return shortfall.actual >= thresholds.min_story_word_count * settings.NEAR_COMPLETE_STORY_RATIO
    if shortfall.section == "analysis" and shortfall.metric == "symbols":
        # A document with no symbols at all is never near-complete.
        return shortfall.deficit == 0
    return shortfall.deficit <= 1


def check_completeness(
    doc: PartialMythDocument,
    thresholds: Thresholds,
    sections: Iterable[str] = REQUIRED_SECTIONS,
) -> CompletenessReport:
    """Check the given sections of ``doc`` against ``thresholds``.

    A section is missing when absent or unparsed and incomplete when any of
    its counts falls short. The report is near-complete when nothing is
    missing, every count is within one unit of its minimum and the story
    reaches the configured share of its word minimum.
    """
    report = CompletenessReport()
    for name in sections:
        if not doc.is_present(name):
            report.missing.append(name)
            continue
        measures = _section_measures(name, doc, thresholds)
        for measure in measures:
            report.counts[f"{measure.section}.{measure.metric}"] = measure.actual
            if measure.deficit:
                report.shortfalls.append(measure)
        if any(m.deficit for m in measures):
            report.incomplete.append(name)

    report.is_near_complete = (
        not report.is_complete
        and not report.missing
        and all(_within_leniency(s, thresholds) for s in report.shortfalls)
    )
    logger.debug(
        "Completeness check finished.",
        missing=report.missing,
        incomplete=report.incomplete,
        near_complete=report.is_near_complete,
        counts=report.counts,
    )
    return report
