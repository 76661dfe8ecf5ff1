# models/myth_models.py
"""Pydantic models for generated mythology documents.

Field names are snake_case; serialized keys are the camelCase keys the model
is prompted to produce (``worldMap``, ``runicScript``...). Every list field is
lenient: items that fail validation are dropped from the list and reported
through the ``rejected`` sink in the validation context instead of failing
the whole section.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, Literal

import structlog
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = structlog.get_logger(__name__)

THEMATIC_SECTIONS = ("First Section", "Middle Section", "Last Section")


class MythBaseModel(BaseModel):
    """Base model using the camelCase wire keys of generated documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class UnparsedSection(BaseModel):
    """A section or list item that was present but could not be validated."""

    kind: Literal["unparsed"] = "unparsed"
    section: str
    raw: Any = None
    reason: str = ""


def _as_list(value: Any) -> list[Any]:
    """Normalize the shapes models use for lists.

    ``None`` becomes empty, a single object becomes a one-item list and a
    mapping of ``name -> object`` becomes its values, with the key kept as
    the item's name when it has none.
    """
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        if value and all(isinstance(v, dict) for v in value.values()):
            items = []
            for key, item in value.items():
                if "name" not in item and "word" not in item and "title" not in item:
                    item = {"name": key, **item}
                items.append(item)
            return items
        return [value]
    return [value]


def _as_str_list(value: Any) -> list[str]:
    items = _as_list(value)
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, dict):
            item = item.get("name") or item.get("description") or ", ".join(
                str(v) for v in item.values()
            )
        text = str(item).strip()
        if text:
            out.append(text)
    return out


def lenient_items(item_model: type[BaseModel]) -> Callable[[Any, ValidationInfo], list[Any]]:
    """Build a before-validator that validates list items one by one."""

    def _validate(value: Any, info: ValidationInfo) -> list[Any]:
        kept: list[Any] = []
        context = info.context if isinstance(info.context, dict) else {}
        for item in _as_list(value):
            if isinstance(item, item_model):
                kept.append(item)
                continue
            try:
                kept.append(item_model.model_validate(item, context=info.context))
            except ValidationError as exc:
                reason = exc.errors()[0]["msg"] if exc.errors() else str(exc)
                logger.debug(
                    "Dropping invalid %s item: %s", item_model.__name__, reason
                )
                sink = context.get("rejected")
                if sink is not None:
                    sink.append(
                        UnparsedSection(
                            section=info.field_name or item_model.__name__,
                            raw=item,
                            reason=reason,
                        )
                    )
        return kept

    return _validate


StrList = Annotated[list[str], BeforeValidator(_as_str_list)]


class Story(MythBaseModel):
    title: str = ""
    text: str = ""
    mood: str = ""


class EntityRelationship(MythBaseModel):
    """Structured relationship as returned by the model."""

    entity_id: str = ""
    entity_name: str = ""
    target: str = ""
    name: str = ""
    type: str = ""
    description: str = ""

    def target_name(self) -> str:
        return (self.entity_name or self.target or self.name).strip()


def _relationship_items(value: Any) -> list[Any]:
    return [item for item in _as_list(value) if isinstance(item, str | dict)]


class Entity(MythBaseModel):
    id: str = ""
    name: str = Field(min_length=1)
    type: str = ""
    archetype: str = ""
    role: str = ""
    description: str = ""
    powers: StrList = []
    weaknesses: StrList = []
    domains: StrList = []
    relationships: Annotated[
        list[EntityRelationship | str], BeforeValidator(_relationship_items)
    ] = []

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("entity name is blank")
        return value


class Coordinates(MythBaseModel):
    x: float = 0.0
    y: float = 0.0


class Location(MythBaseModel):
    name: str = Field(min_length=1)
    type: str = ""
    description: str = ""
    coordinates: Coordinates | None = None
    importance: str = ""
    connections: StrList = []
    inhabitants: StrList = []


class WorldMap(MythBaseModel):
    locations: Annotated[list[Location], BeforeValidator(lenient_items(Location))] = []
    map_description: str = ""
    total_area: str = ""


class TimelineEvent(MythBaseModel):
    step: int | None = None
    title: str = Field(min_length=1)
    description: str = ""


class MythSymbol(MythBaseModel):
    """A symbol and what it stands for in the myth."""

    symbol: str = Field(min_length=1)
    target: str = ""

    @model_validator(mode="before")
    @classmethod
    def _meaning_as_target(cls, value: Any) -> Any:
        if isinstance(value, dict) and not value.get("target") and value.get("meaning"):
            return {**value, "target": value["meaning"]}
        return value


class ArchetypeConflict(MythBaseModel):
    character1: str = ""
    character2: str = ""
    conflict: str = ""


class ThematicDensity(MythBaseModel):
    section: str = THEMATIC_SECTIONS[0]
    theme: str = ""

    @field_validator("section", mode="before")
    @classmethod
    def _normalize_section(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        for label in THEMATIC_SECTIONS:
            if text.startswith(label.split()[0].lower()):
                return label
        return THEMATIC_SECTIONS[0]

    @field_validator("theme", mode="before")
    @classmethod
    def _join_themes(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ", ".join(str(v) for v in value)
        return value


class SocialCode(MythBaseModel):
    sacred: str = ""
    forbidden: str = ""
    forgivable: str = ""


class CharacterNode(MythBaseModel):
    id: str = ""
    name: str = Field(min_length=1)
    archetype: str = ""
    role: str = "unknown"
    description: str = ""


class RelationshipEdge(MythBaseModel):
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    type: str = "bond"
    description: str = ""


class Analysis(MythBaseModel):
    timeline: Annotated[
        list[TimelineEvent], BeforeValidator(lenient_items(TimelineEvent))
    ] = []
    symbols: Annotated[list[MythSymbol], BeforeValidator(lenient_items(MythSymbol))] = []
    archetype_conflicts: Annotated[
        list[ArchetypeConflict], BeforeValidator(lenient_items(ArchetypeConflict))
    ] = []
    thematic_density: Annotated[
        list[ThematicDensity], BeforeValidator(lenient_items(ThematicDensity))
    ] = []
    social_code: SocialCode | None = None
    characters: Annotated[
        list[CharacterNode], BeforeValidator(lenient_items(CharacterNode))
    ] = []
    relationships: Annotated[
        list[RelationshipEdge], BeforeValidator(lenient_items(RelationshipEdge))
    ] = []

    @field_validator("social_code", mode="before")
    @classmethod
    def _coerce_social_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"sacred": value}
        return value


class AncientWord(MythBaseModel):
    word: str = Field(min_length=1)
    meaning: str = ""
    runic_script: str = ""
    pronunciation: str = ""
    category: str = ""
    rarity: str = ""


class AncientLanguage(MythBaseModel):
    language_name: str = ""
    description: str = ""
    writing_system: str = ""
    vocabulary: Annotated[
        list[AncientWord], BeforeValidator(lenient_items(AncientWord))
    ] = []


class Artifact(MythBaseModel):
    name: str = "Unnamed Artifact"
    description: str = "No description"
    power: str = "Unknown power"

    @model_validator(mode="before")
    @classmethod
    def _from_bare_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {
                "name": value,
                "description": "Legendary artifact of unclear origin",
                "power": "Unknown power",
            }
        return value


class Extras(MythBaseModel):
    rituals: list[Any] = []
    temples: list[Any] = []
    prophecies: list[Any] = []
    artifacts: Annotated[list[Artifact], BeforeValidator(lenient_items(Artifact))] = []

    @field_validator("rituals", "temples", "prophecies", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> list[Any]:
        return _as_list(value)


EntityList = Annotated[list[Entity], BeforeValidator(lenient_items(Entity))]


class MythDocument(MythBaseModel):
    """A finalized mythology document."""

    story: Story
    entities: EntityList = []
    world_map: WorldMap = Field(default_factory=WorldMap)
    analysis: Analysis = Field(default_factory=Analysis)
    ancient_language: AncientLanguage = Field(default_factory=AncientLanguage)
    extras: Extras = Field(default_factory=Extras)


# JSON key -> (attribute name, adapter validating the raw section value)
SECTION_ADAPTERS: dict[str, tuple[str, TypeAdapter[Any]]] = {
    "story": ("story", TypeAdapter(Story)),
    "entities": ("entities", TypeAdapter(EntityList)),
    "worldMap": ("world_map", TypeAdapter(WorldMap)),
    "analysis": ("analysis", TypeAdapter(Analysis)),
    "ancientLanguage": ("ancient_language", TypeAdapter(AncientLanguage)),
    "extras": ("extras", TypeAdapter(Extras)),
}
DOCUMENT_SECTIONS: tuple[str, ...] = tuple(SECTION_ADAPTERS)


class PartialMythDocument(BaseModel):
    """Working value carried through parsing, recovery and merging.

    Each section is either its parsed model, an ``UnparsedSection`` when the
    response contained something unusable, or ``None`` when it was absent.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    story: Story | UnparsedSection | None = None
    entities: list[Entity] | UnparsedSection | None = None
    world_map: WorldMap | UnparsedSection | None = None
    analysis: Analysis | UnparsedSection | None = None
    ancient_language: AncientLanguage | UnparsedSection | None = None
    extras: Extras | UnparsedSection | None = None
    rejected: list[UnparsedSection] = []

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> PartialMythDocument:
        """Validate a raw parsed record section by section."""
        record = dict(record)
        stray_social_code = record.pop("socialCode", None)
        if stray_social_code is not None:
            analysis_raw = record.get("analysis")
            if analysis_raw is None:
                record["analysis"] = {"socialCode": stray_social_code}
            elif isinstance(analysis_raw, dict) and not analysis_raw.get("socialCode"):
                record["analysis"] = {**analysis_raw, "socialCode": stray_social_code}

        rejected: list[UnparsedSection] = []
        values: dict[str, Any] = {}
        for key, (attr, adapter) in SECTION_ADAPTERS.items():
            if key not in record or record[key] is None:
                continue
            raw = record[key]
            try:
                values[attr] = adapter.validate_python(
                    raw, context={"rejected": rejected}
                )
            except ValidationError as exc:
                logger.warning(
                    "Section '%s' failed validation: %s", key, exc.errors()[:3]
                )
                values[attr] = UnparsedSection(
                    section=key, raw=raw, reason=str(exc.errors()[0]["msg"])
                )
        return cls(**values, rejected=rejected)

    def get_section(self, name: str) -> Any:
        return getattr(self, SECTION_ADAPTERS[name][0])

    def is_present(self, name: str) -> bool:
        value = self.get_section(name)
        return value is not None and not isinstance(value, UnparsedSection)

    def present_sections(self) -> list[str]:
        return [name for name in DOCUMENT_SECTIONS if self.is_present(name)]

    def replace_sections(self, **sections: Any) -> PartialMythDocument:
        """Return a copy with the given JSON-keyed sections replaced."""
        update = {SECTION_ADAPTERS[name][0]: value for name, value in sections.items()}
        return self.model_copy(update=update)

    def without(self, *names: str) -> PartialMythDocument:
        return self.replace_sections(**{name: None for name in names})

    def is_empty(self) -> bool:
        return not self.present_sections()

    def to_record(self) -> dict[str, Any]:
        """Serialize the parsed sections using their wire keys."""
        record: dict[str, Any] = {}
        for key, (attr, adapter) in SECTION_ADAPTERS.items():
            value = getattr(self, attr)
            if value is None or isinstance(value, UnparsedSection):
                continue
            record[key] = adapter.dump_python(
                value, by_alias=True, exclude_none=True, mode="json"
            )
        return record
