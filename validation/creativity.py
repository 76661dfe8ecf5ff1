# validation/creativity.py
"""Originality checks: generated myths must invent rather than borrow."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog

from models.myth_models import PartialMythDocument
from myth_catalog import (
    FORBIDDEN_NAMES,
    GENERIC_ENTITY_NAMES,
    MIN_ENTITY_NAME_LENGTH,
)

logger = structlog.get_logger(__name__)

_FORBIDDEN_PATTERN = re.compile(
    r"(?<![a-z])(" + "|".join(FORBIDDEN_NAMES) + r")(?![a-z])", re.IGNORECASE
)


@dataclass
class CreativityReport:
    issues: list[str] = field(default_factory=list)
    borrowed_names: list[str] = field(default_factory=list)

    @property
    def is_creative(self) -> bool:
        return not self.issues


def _texts_to_scan(doc: PartialMythDocument) -> list[str]:
    texts: list[str] = []
    if doc.is_present("story"):
        texts.extend([doc.story.title, doc.story.text])
    if doc.is_present("entities"):
        for entity in doc.entities:
            texts.extend([entity.name, entity.description])
    if doc.is_present("analysis"):
        texts.extend(character.name for character in doc.analysis.characters)
    if doc.is_present("worldMap"):
        texts.extend(location.name for location in doc.world_map.locations)
    return [t for t in texts if t]


def check_creativity(doc: PartialMythDocument) -> CreativityReport:
    """Flag borrowed mythological names, generic entities and anglicized words."""
    report = CreativityReport()

    for text in _texts_to_scan(doc):
        for match in _FORBIDDEN_PATTERN.finditer(text):
            name = match.group(1).lower()
            if name not in report.borrowed_names:
                report.borrowed_names.append(name)
                report.issues.append(f'Existing mythological name "{name}" used')

    if doc.is_present("entities"):
        for entity in doc.entities:
            name_lower = entity.name.lower()
            if len(entity.name) < MIN_ENTITY_NAME_LENGTH:
                report.issues.append(f'Entity name "{entity.name}" is too short')
            elif name_lower in GENERIC_ENTITY_NAMES or (
                name_lower.startswith("the ")
                and name_lower[4:] in GENERIC_ENTITY_NAMES
            ):
                report.issues.append(f'Entity name "{entity.name}" is too generic')

    if doc.is_present("ancientLanguage"):
        seen_scripts: dict[str, str] = {}
        for word in doc.ancient_language.vocabulary:
            script = word.runic_script.strip()
            if script:
                if script in seen_scripts:
                    report.issues.append(
                        f'"{word.word}" shares runes with "{seen_scripts[script]}": {script}'
                    )
                else:
                    seen_scripts[script] = word.word
            token = word.word.strip()
            if re.search(r"\s", token):
                report.issues.append(f'"{token}" is a multi-word phrase')
            elif len(re.split(r"[-_]+", token)) > 1:
                report.issues.append(f'"{token}" looks like a compound English word')

    if report.issues:
        logger.warning(
            "Creativity check flagged %d issue(s).",
            len(report.issues),
            issues=report.issues[:10],
        )
    return report
