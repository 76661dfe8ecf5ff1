# orchestration/prompt_builder.py
"""Assembles template context for the generation and recovery prompts."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from config import settings
from models.myth_models import PartialMythDocument
from models.request_models import GenerationRequest, MythCategory, Thresholds
from myth_catalog import FORBIDDEN_NAMES, MOOD_DESCRIPTIONS, describe_selection
from prompt_renderer import render_prompt, render_prompt_string
from utils.text_processing import truncate_preview

logger = structlog.get_logger(__name__)

CATEGORY_LABELS: dict[MythCategory, str] = {
    MythCategory.COSMOLOGY: "Cosmology",
    MythCategory.GODS: "Gods",
    MythCategory.BEINGS: "Beings",
    MythCategory.ARCHETYPE: "Archetype",
    MythCategory.THEMES: "Themes",
    MythCategory.SYMBOLS: "Symbols",
    MythCategory.SOCIAL_CODES: "Social Codes",
}


def _section_instruction(section: str, thresholds: Thresholds) -> str:
    instructions = {
        "story": (
            f"story: a complete mythological story of at least "
            f"{thresholds.min_story_word_count} words with title, text and mood."
        ),
        "entities": (
            f"entities: at least {thresholds.min_entities} mythical entities with name, "
            "type, archetype, role, description and relationships."
        ),
        "worldMap": (
            f"worldMap: at least {thresholds.min_locations} locations, each with name, "
            "type, description, coordinates and importance."
        ),
        "analysis": (
            f"analysis: a timeline of at least {thresholds.min_timeline_events} events, "
            "symbols, archetype conflicts, thematic density, characters and a social code."
        ),
        "ancientLanguage": (
            f"ancientLanguage: at least {thresholds.min_vocabulary} vocabulary words, each "
            "with word, meaning, category, rarity and pronunciation. Never leave the "
            "vocabulary empty."
        ),
        "extras": "extras: rituals, temples, prophecies and artifacts of this mythology.",
    }
    return instructions.get(section, f"{section}: generate this section.")


def selection_lines(request: GenerationRequest) -> list[dict[str, str]]:
    lines = []
    for category in MythCategory:
        lines.append(
            {
                "label": CATEGORY_LABELS[category],
                "text": describe_selection(
                    category,
                    request.selections[category],
                    request.custom_descriptions.get(category),
                ),
            }
        )
    return lines


def _render(template_name: str, override: str | None, context: dict[str, Any]) -> str:
    if override and override.strip():
        logger.debug("Rendering prompt override instead of %s.", template_name)
        return render_prompt_string(override, context)
    return render_prompt(template_name, context)


def _story_context(request: GenerationRequest, thresholds: Thresholds) -> dict[str, Any]:
    return {
        "selections": selection_lines(request),
        "mood": request.mood.value,
        "mood_description": MOOD_DESCRIPTIONS[request.mood],
        "forbidden_names": [name.capitalize() for name in FORBIDDEN_NAMES],
        "min_story_word_count": thresholds.min_story_word_count,
        "min_entities": thresholds.min_entities,
    }


def build_phase1_prompt(request: GenerationRequest, thresholds: Thresholds) -> str:
    """Prompt for the story and entities."""
    return _render(
        "myth_orchestrator/phase1_story.j2",
        settings.PHASE1_PROMPT_OVERRIDE,
        _story_context(request, thresholds),
    )


def build_enhanced_retry_prompt(
    request: GenerationRequest,
    thresholds: Thresholds,
    missing_features: Sequence[str],
) -> str:
    """Phase-1 prompt that names the custom features the last attempt missed."""
    context = _story_context(request, thresholds)
    context["missing_features"] = list(missing_features)
    return _render(
        "myth_orchestrator/enhanced_retry.j2",
        settings.ENHANCED_RETRY_PROMPT_OVERRIDE,
        context,
    )


def build_phase2_prompt(
    request: GenerationRequest,
    working: PartialMythDocument,
    thresholds: Thresholds,
    sections: Sequence[str],
) -> str:
    """Prompt for the world map, analysis and language, grounded on phase 1."""
    story = working.story if working.is_present("story") else None
    entities = working.entities if working.is_present("entities") else []
    context = {
        "selections": selection_lines(request),
        "story_title": story.title if story else "Untitled",
        "story_preview": truncate_preview(
            story.text if story else "", settings.STORY_PREVIEW_CHARS
        ),
        "entities": [
            {
                "name": entity.name,
                "type": entity.type,
                "description": truncate_preview(
                    entity.description, settings.ENTITY_DESCRIPTION_PREVIEW_CHARS
                ),
            }
            for entity in entities
        ],
        "sections": list(sections),
        "min_locations": thresholds.min_locations,
        "min_timeline_events": thresholds.min_timeline_events,
        "min_vocabulary": thresholds.min_vocabulary,
    }
    return _render(
        "myth_orchestrator/phase2_world.j2", settings.PHASE2_PROMPT_OVERRIDE, context
    )


def build_recovery_prompt(
    working: PartialMythDocument,
    sections: Sequence[str],
    thresholds: Thresholds,
    shortfalls: Sequence[str] = (),
) -> str:
    """Compact prompt regenerating only ``sections`` of ``working``."""
    story = working.story if working.is_present("story") else None
    entity_names = (
        [entity.name for entity in working.entities]
        if working.is_present("entities")
        else []
    )
    location_names = (
        [location.name for location in working.world_map.locations if location.name]
        if working.is_present("worldMap")
        else []
    )
    excerpt = ""
    if story and story.text:
        excerpt = story.text[: settings.STORY_EXCERPT_CHARS] + "..."
    context = {
        "story_title": story.title if story and story.title else "Unknown",
        "story_excerpt": excerpt,
        "entity_names": entity_names,
        "location_names": location_names,
        "sections": list(sections),
        "instructions": [_section_instruction(s, thresholds) for s in sections],
        "shortfalls": list(shortfalls),
        "min_vocabulary": thresholds.min_vocabulary,
        "min_timeline_events": thresholds.min_timeline_events,
    }
    return render_prompt("recovery_coordinator/recover_sections.j2", context)
