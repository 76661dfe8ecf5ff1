# tests/test_myth_models.py
from conftest import entity_records, language_record, story_record

from models.myth_models import (
    Analysis,
    Extras,
    PartialMythDocument,
    ThematicDensity,
    UnparsedSection,
)


def test_invalid_list_items_are_dropped_and_reported():
    doc = PartialMythDocument.from_record(
        {"entities": [*entity_records(2), {"name": "   "}, {"type": "god"}]}
    )
    assert [e.name for e in doc.entities] == ["Velmora", "Kaethis"]
    assert len(doc.rejected) == 2
    assert doc.rejected[1].raw == {"type": "god"}


def test_dict_shaped_lists_are_normalized():
    doc = PartialMythDocument.from_record(
        {"worldMap": {"locations": {"Saltreach": {"type": "city"}, "Hollow": {"type": "cave"}}}}
    )
    assert [loc.name for loc in doc.world_map.locations] == ["Saltreach", "Hollow"]


def test_unparseable_section_becomes_unparsed_variant():
    doc = PartialMythDocument.from_record({"story": "just a string", "entities": entity_records(1)})
    assert isinstance(doc.story, UnparsedSection)
    assert doc.story.section == "story"
    assert not doc.is_present("story")
    assert doc.present_sections() == ["entities"]


def test_stray_social_code_is_folded_into_analysis():
    doc = PartialMythDocument.from_record(
        {"analysis": {"timeline": []}, "socialCode": {"sacred": "The tide"}}
    )
    assert doc.analysis.social_code.sacred == "The tide"


def test_social_code_string_and_symbol_meaning():
    analysis = Analysis.model_validate(
        {"socialCode": "Never speak at low tide", "symbols": [{"symbol": "Shell", "meaning": "memory"}]}
    )
    assert analysis.social_code.sacred == "Never speak at low tide"
    assert analysis.symbols[0].target == "memory"


def test_thematic_sections_are_normalized():
    assert ThematicDensity.model_validate({"section": "middle part"}).section == "Middle Section"
    assert ThematicDensity.model_validate({"section": "prologue"}).section == "First Section"


def test_string_artifacts_get_defaults():
    extras = Extras.model_validate({"artifacts": ["Tide Bell"], "rituals": {"name": "Salt vigil"}})
    artifact = extras.artifacts[0]
    assert artifact.name == "Tide Bell"
    assert artifact.description == "Legendary artifact of unclear origin"
    assert artifact.power == "Unknown power"
    assert extras.rituals == [{"name": "Salt vigil"}]


def test_to_record_uses_wire_keys():
    doc = PartialMythDocument.from_record(
        {"story": story_record(), "ancientLanguage": language_record(2)}
    )
    record = doc.to_record()
    assert record["ancientLanguage"]["languageName"] == "Tidetongue"
    assert "runicScript" in record["ancientLanguage"]["vocabulary"][0]
    assert "worldMap" not in record


def test_without_and_replace_sections():
    doc = PartialMythDocument.from_record({"story": story_record(), "entities": entity_records(2)})
    trimmed = doc.without("story")
    assert trimmed.present_sections() == ["entities"]
    assert doc.is_present("story")
