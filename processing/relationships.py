# processing/relationships.py
"""Reconstructs relationship edges from the relationships entities declare."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Protocol

import structlog

from models.myth_models import Entity, EntityRelationship, RelationshipEdge
from myth_catalog import MIN_VOCABULARY_WORD_LENGTH as MIN_WORD_LENGTH

logger = structlog.get_logger(__name__)

_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("creator", ("created", "made", "formed")),
    ("bond", ("taught", "trained", "mentored")),
    ("conflict", ("fought", "opposed", "against")),
    ("support", ("guardian", "protect")),
    ("bond", ("apprentice", "student")),
)

_LOCATION_WORDS = re.compile(
    r"(Tree|Mountain|Valley|Sea|River|Forest|Temple|City|Realm|Land|Place|Area|"
    r"Region|Path|Road|Bridge|Gate|Portal|Shrine|Sanctuary|Tower|Castle|Fortress|"
    r"Kingdom|Empire|Domain)",
    re.IGNORECASE,
)


class RelationshipResolver(Protocol):
    """Turns the relationships declared on entities into graph edges."""

    def resolve(self, entities: Sequence[Entity]) -> list[RelationshipEdge]: ...


def looks_like_location(target: str) -> bool:
    """Return ``True`` for targets that name a place rather than a being."""
    if not _LOCATION_WORDS.search(target):
        return False
    return len(target) > 50 or " of " in target or " the " in target


def relationship_type_from_text(text: str) -> str:
    lowered = text.lower()
    for rel_type, keywords in _TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return rel_type
    return "bond"


class HeuristicRelationshipResolver:
    """Matches free-text relationship descriptions against known entity names."""

    def _names(self, entities: Sequence[Entity]) -> dict[str, str]:
        return {entity.name.lower().strip(): entity.name for entity in entities}

    def _match_text(self, text: str, names: dict[str, str]) -> str | None:
        lowered = text.lower()
        for lowered_name, name in names.items():
            if len(lowered_name) >= MIN_WORD_LENGTH and lowered_name in lowered:
                return name
        for word in text.split():
            clean_word = re.sub(r"[.,!?;:]", "", word).lower()
            if len(clean_word) < MIN_WORD_LENGTH:
                continue
            for lowered_name, name in names.items():
                if lowered_name == clean_word or clean_word in lowered_name.split():
                    return name
        return None

    def resolve_text(
        self, source: Entity, text: str, names: dict[str, str]
    ) -> RelationshipEdge | None:
        text = text.strip()
        if not text:
            return None
        others = {key: name for key, name in names.items() if name != source.name}
        target = self._match_text(text, others)
        if target is None:
            logger.debug(
                "Could not extract entity name from string relationship",
                source=source.name,
                relationship=text,
            )
            return None
        return RelationshipEdge(
            source=source.name,
            target=target,
            type=relationship_type_from_text(text),
            description=text,
        )

    def resolve_structured(
        self, source: Entity, relation: EntityRelationship, names: dict[str, str]
    ) -> RelationshipEdge | None:
        target = relation.target_name()
        if not target:
            logger.warning(
                "Skipping relationship with missing target", source=source.name
            )
            return None
        known = names.get(target.lower())
        if known is None and looks_like_location(target):
            logger.warning(
                "Skipping relationship whose target looks like a location",
                source=source.name,
                target=target,
            )
            return None
        return RelationshipEdge(
            source=source.name,
            target=known or target,
            type=relation.type or "bond",
            description=relation.description,
        )

    def resolve(self, entities: Sequence[Entity]) -> list[RelationshipEdge]:
        names = self._names(entities)
        edges: list[RelationshipEdge] = []
        for entity in entities:
            for relation in entity.relationships:
                if isinstance(relation, str):
                    edge = self.resolve_text(entity, relation, names)
                else:
                    edge = self.resolve_structured(entity, relation, names)
                if edge is not None:
                    edges.append(edge)
        return edges
