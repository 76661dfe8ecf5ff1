# tests/test_section_extractor.py
import json

from conftest import entity_records, story_record

from parsing.section_extractor import extract_sections, sections_present


def _truncated_response() -> str:
    head = json.dumps({"story": story_record(), "entities": entity_records(3)})
    return head[:-1] + ', "ancientLanguage": {"vocabulary": [{"word": "vel"}, {"wo'


def test_extracts_complete_sections_and_skips_truncated_one():
    sections = extract_sections(_truncated_response())
    assert set(sections) == {"story", "entities"}
    assert sections["story"]["title"] == "The Ember Tide"
    assert len(sections["entities"]) == 3


def test_sections_present_reports_attempted_sections():
    assert sections_present(_truncated_response()) == {
        "story",
        "entities",
        "ancientLanguage",
    }


def test_nested_keys_do_not_shadow_top_level_sections():
    text = '{"analysis": {"story": "inner"}, "story": {"title": "Outer"}, "worldMap": {'
    sections = extract_sections(text, ["story", "analysis"])
    assert sections["story"] == {"title": "Outer"}
    assert sections["analysis"] == {"story": "inner"}


def test_repairs_a_malformed_section_in_isolation():
    text = '{"story": {"title": "Ash", "text": "x",}, "entities": [oops'
    sections = extract_sections(text)
    assert sections == {"story": {"title": "Ash", "text": "x"}}


def test_restricts_to_requested_sections():
    text = json.dumps({"story": story_record(), "entities": entity_records(2)})
    assert set(extract_sections(text, ["entities"])) == {"entities"}


def test_no_object_yields_nothing():
    assert extract_sections("the model refused") == {}
