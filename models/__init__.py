"""Central package for MythForge data models."""

from .myth_models import (
    DOCUMENT_SECTIONS,
    Analysis,
    AncientLanguage,
    AncientWord,
    ArchetypeConflict,
    Artifact,
    CharacterNode,
    Entity,
    EntityRelationship,
    Extras,
    Location,
    MythDocument,
    MythSymbol,
    PartialMythDocument,
    RelationshipEdge,
    SocialCode,
    Story,
    ThematicDensity,
    TimelineEvent,
    UnparsedSection,
    WorldMap,
)
from .request_models import GenerationRequest, MythCategory, MythMood, Thresholds

__all__ = [
    "DOCUMENT_SECTIONS",
    "Analysis",
    "AncientLanguage",
    "AncientWord",
    "ArchetypeConflict",
    "Artifact",
    "CharacterNode",
    "Entity",
    "EntityRelationship",
    "Extras",
    "Location",
    "MythDocument",
    "MythSymbol",
    "PartialMythDocument",
    "RelationshipEdge",
    "SocialCode",
    "Story",
    "ThematicDensity",
    "TimelineEvent",
    "UnparsedSection",
    "WorldMap",
    "GenerationRequest",
    "MythCategory",
    "MythMood",
    "Thresholds",
]
