# processing/finalize.py
"""Turns the working document into a finalized ``MythDocument``."""

from __future__ import annotations

import structlog

from models.myth_models import (
    Analysis,
    AncientLanguage,
    CharacterNode,
    Entity,
    Extras,
    MythDocument,
    PartialMythDocument,
    Story,
    WorldMap,
)
from processing.relationships import HeuristicRelationshipResolver, RelationshipResolver
from processing.runic import to_runic
from processing.section_merge import (
    LIST_IDENTITY,
    dedupe_models,
    entity_identity,
    merge_by_key,
)

logger = structlog.get_logger(__name__)


def _characters_from_entities(entities: list[Entity]) -> list[CharacterNode]:
    return [
        CharacterNode(
            id=entity.id or entity.name.lower().replace(" ", "-"),
            name=entity.name,
            archetype=entity.archetype,
            role=entity.role or "unknown",
            description=entity.description,
        )
        for entity in entities
    ]


def _with_runic_scripts(language: AncientLanguage) -> AncientLanguage:
    vocabulary = [
        word
        if word.runic_script.strip()
        else word.model_copy(update={"runic_script": to_runic(word.word)})
        for word in language.vocabulary
    ]
    return language.model_copy(update={"vocabulary": vocabulary})


def finalize_document(
    working: PartialMythDocument,
    resolver: RelationshipResolver | None = None,
    mood: str | None = None,
) -> MythDocument:
    """Fill derived fields, apply defaults and drop duplicate entries."""
    resolver = resolver or HeuristicRelationshipResolver()

    if working.is_present("story"):
        story = working.story
    else:
        logger.warning("Finalizing a document without a story section.")
        story = Story(title="Untitled Myth")
    if mood and not story.mood:
        story = story.model_copy(update={"mood": mood})

    entities = (
        merge_by_key(working.entities, [], entity_identity)
        if working.is_present("entities")
        else []
    )
    world_map = working.world_map if working.is_present("worldMap") else WorldMap()
    analysis = working.analysis if working.is_present("analysis") else Analysis()
    language = (
        working.ancient_language
        if working.is_present("ancientLanguage")
        else AncientLanguage()
    )
    extras = working.extras if working.is_present("extras") else Extras()

    derived_edges = resolver.resolve(entities)
    edge_key = LIST_IDENTITY[(Analysis, "relationships")]
    analysis = analysis.model_copy(
        update={
            "characters": analysis.characters or _characters_from_entities(entities),
            "relationships": merge_by_key(analysis.relationships, derived_edges, edge_key),
        }
    )

    document = MythDocument(
        story=story,
        entities=entities,
        world_map=dedupe_models(world_map),
        analysis=dedupe_models(analysis),
        ancient_language=dedupe_models(_with_runic_scripts(language)),
        extras=dedupe_models(extras),
    )
    logger.info(
        "Finalized mythology document.",
        title=story.title,
        entities=len(document.entities),
        locations=len(document.world_map.locations),
        vocabulary=len(document.ancient_language.vocabulary),
        relationships=len(document.analysis.relationships),
    )
    return document
