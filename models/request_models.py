# models/request_models.py
"""User-facing models describing what to generate."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import settings


class MythCategory(str, Enum):
    COSMOLOGY = "cosmology"
    GODS = "gods"
    BEINGS = "beings"
    ARCHETYPE = "archetype"
    THEMES = "themes"
    SYMBOLS = "symbols"
    SOCIAL_CODES = "socialcodes"


class MythMood(str, Enum):
    EPIC = "epic"
    MYSTERIOUS = "mysterious"
    TRAGIC = "tragic"
    HEROIC = "heroic"
    DARK = "dark"
    HOPEFUL = "hopeful"
    ANCIENT = "ancient"
    MYSTICAL = "mystical"
    STANDARD = "standard"
    GOTHIC = "gothic"
    FAIRYTALE = "fairytale"
    SCIFI = "scifi"
    ROMANTIC = "romantic"
    DRAMATIC = "dramatic"
    LIGHT = "light"
    COMIC = "comic"


class Thresholds(BaseModel):
    """Minimum counts and lengths a document must reach to be complete."""

    model_config = ConfigDict(frozen=True)

    min_entities: int = Field(default_factory=lambda: settings.MIN_ENTITIES, ge=0)
    min_locations: int = Field(default_factory=lambda: settings.MIN_LOCATIONS, ge=0)
    min_vocabulary: int = Field(default_factory=lambda: settings.MIN_VOCABULARY, ge=0)
    min_timeline_events: int = Field(
        default_factory=lambda: settings.MIN_TIMELINE_EVENTS, ge=0
    )
    min_story_length: int = Field(
        default_factory=lambda: settings.MIN_STORY_LENGTH, ge=0
    )
    min_story_word_count: int = Field(
        default_factory=lambda: settings.MIN_STORY_WORD_COUNT, ge=0
    )


class GenerationRequest(BaseModel):
    """One block choice per category, optional custom text and a mood.

    Immutable once built so a running generation always sees the request it
    started with.
    """

    model_config = ConfigDict(frozen=True)

    selections: dict[MythCategory, str]
    custom_descriptions: dict[MythCategory, str] = {}
    mood: MythMood = MythMood.MYSTICAL
    thresholds: Thresholds | None = None

    @field_validator("selections")
    @classmethod
    def _require_all_categories(
        cls, value: dict[MythCategory, str]
    ) -> dict[MythCategory, str]:
        missing = [c.value for c in MythCategory if not str(value.get(c, "")).strip()]
        if missing:
            raise ValueError(f"missing selections for: {', '.join(missing)}")
        return {c: value[c].strip() for c in MythCategory}

    @field_validator("custom_descriptions")
    @classmethod
    def _drop_blank_descriptions(
        cls, value: dict[MythCategory, str]
    ) -> dict[MythCategory, str]:
        return {k: v.strip() for k, v in value.items() if v and v.strip()}

    @property
    def customized_categories(self) -> dict[MythCategory, str]:
        return dict(self.custom_descriptions)

    def with_mood(self, mood: MythMood) -> GenerationRequest:
        return self.model_copy(update={"mood": mood})
