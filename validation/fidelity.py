# validation/fidelity.py
"""Measures how much of the user's custom text is traceable in a document.

Each customized category contributes its salient terms (letters only, at
least three characters, stopwords removed). A term counts as found when its
stem, a synonym's stem, or a close fuzzy match occurs among the words of the
story and entities. A category is traceable when enough of its terms are
found; the score is the share of traceable categories.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog
from rapidfuzz import fuzz, process

from config import settings
from models.myth_models import PartialMythDocument
from models.request_models import GenerationRequest, MythCategory
from utils.text_processing import normalize_text_for_matching

logger = structlog.get_logger(__name__)

STOPWORDS: frozenset[str] = frozenset(
    """
    the and for with that this from into onto upon over under are was were
    been being has have had not but nor yet its it's their there them they
    who whom whose which what when where why how all any each every some
    such than then too very can could should would will shall may might must
    our ours your yours his her hers him she he one ones also only just
    about above after again against because before below between both during
    further here more most other own same out off once while through until
    where every many much few using use like make made thing things way
    """.split()
)

SYNONYMS: dict[str, tuple[str, ...]] = {
    "seeks": ("desires", "wants", "pursues", "yearns", "longs", "strives"),
    "craves": ("desires", "wants", "yearns", "longs", "hungers", "thirsts"),
    "creates": ("generates", "makes", "forms", "produces", "brings", "manifests", "fashions", "shapes", "crafts"),
    "create": ("generate", "make", "form", "produce", "bring", "manifest", "fashion", "shape", "craft"),
    "become": ("transform", "turn", "evolve", "change", "develop"),
    "come": ("arrive", "appear", "emerge", "manifest", "surface"),
    "shapeshifting": ("transformation", "morphing", "changing", "shifting"),
    "overlapping": ("intersecting", "crossing", "merging", "blending"),
    "emotion": ("feeling", "sentiment", "mood", "affect"),
    "creatures": ("beings", "entities", "monsters", "beasts"),
    "unique": ("distinct", "special", "original", "unprecedented", "novel"),
    "mythological": ("mythic", "legendary", "mythical", "ancient"),
}

_SUFFIXES = ("ations", "ation", "ings", "ing", "ness", "ment", "ies", "ied", "es", "ed", "ly", "s")
_TERM_PATTERN = re.compile(r"[a-z]+")


@dataclass
class FidelityReport:
    score: float = 100.0
    is_valid: bool = True
    missing_features: list[str] = field(default_factory=list)
    category_ratios: dict[str, float] = field(default_factory=dict)


def stem(word: str) -> str:
    """Strip one common English suffix, keeping at least three letters."""
    for suffix in _SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= 3:
            return word[: -len(suffix)]
    return word


def salient_terms(description: str) -> list[str]:
    """Return the distinct content words of a custom description."""
    terms: list[str] = []
    for word in _TERM_PATTERN.findall(description.lower()):
        if len(word) >= 3 and word not in STOPWORDS and word not in terms:
            terms.append(word)
    return terms


def _corpus_words(doc: PartialMythDocument) -> list[str]:
    parts: list[str] = []
    if doc.is_present("story"):
        parts.extend([doc.story.title, doc.story.text])
    if doc.is_present("entities"):
        for entity in doc.entities:
            parts.extend(
                [entity.name, entity.type, entity.archetype, entity.role, entity.description]
            )
            parts.extend(entity.powers)
    return normalize_text_for_matching(" ".join(p for p in parts if p)).split()


class _Corpus:
    def __init__(self, words: list[str]) -> None:
        self.vocabulary = sorted({w for w in words if len(w) >= 3})
        self.stems = {stem(w) for w in self.vocabulary}

    def contains(self, term: str) -> bool:
        candidates = (term, *SYNONYMS.get(term, ()))
        if any(stem(c) in self.stems for c in candidates):
            return True
        if not self.vocabulary:
            return False
        match = process.extractOne(
            term,
            self.vocabulary,
            scorer=fuzz.ratio,
            score_cutoff=settings.FIDELITY_FUZZY_CUTOFF,
        )
        return match is not None


def check_fidelity(
    request: GenerationRequest, doc: PartialMythDocument
) -> FidelityReport:
    """Score ``doc`` against the custom descriptions in ``request``."""
    customized = request.customized_categories
    if not customized:
        return FidelityReport()

    corpus = _Corpus(_corpus_words(doc))
    report = FidelityReport()
    traceable = 0
    for category, description in customized.items():
        label = category.value if isinstance(category, MythCategory) else str(category)
        terms = salient_terms(description)
        if not terms:
            ratio = 1.0
        else:
            found = sum(1 for term in terms if corpus.contains(term))
            ratio = found / len(terms)
        report.category_ratios[label] = ratio
        if ratio >= settings.FIDELITY_TERM_MATCH_RATIO:
            traceable += 1
        else:
            report.missing_features.append(f'{label}: "{description}"')

    report.score = round(traceable / len(customized) * 100, 2)
    report.is_valid = not report.missing_features
    logger.info(
        "Fidelity score %.1f (%d/%d customizations traceable).",
        report.score,
        traceable,
        len(customized),
        missing=report.missing_features,
    )
    return report
