# tests/test_completeness.py
from conftest import (
    analysis_record,
    entity_records,
    language_record,
    story_record,
    world_record,
)

from models.myth_models import PartialMythDocument
from models.request_models import Thresholds
from validation.completeness import check_completeness

THRESHOLDS = Thresholds(
    min_entities=5,
    min_locations=3,
    min_vocabulary=4,
    min_timeline_events=3,
    min_story_length=20,
    min_story_word_count=30,
)


def _doc(entities=5, words=40, symbols=1, vocabulary=4, **overrides):
    record = {
        "story": story_record(words),
        "entities": entity_records(entities),
        "worldMap": world_record(3),
        "analysis": analysis_record(3, symbols=symbols),
        "ancientLanguage": language_record(vocabulary),
    }
    record.update(overrides)
    return PartialMythDocument.from_record(record)


def test_complete_document():
    report = check_completeness(_doc(), THRESHOLDS)
    assert report.is_complete
    assert report.counts["entities.count"] == 5


def test_one_short_is_near_complete_and_accepted():
    report = check_completeness(_doc(entities=4), THRESHOLDS)
    assert not report.is_complete
    assert report.incomplete == ["entities"]
    assert report.is_near_complete
    assert report.is_acceptable


def test_two_short_needs_recovery():
    report = check_completeness(_doc(entities=3), THRESHOLDS)
    assert not report.is_acceptable
    assert report.sections_to_recover == ["entities"]
    assert report.shortfalls[0].describe() == "entities.count: 3/5"


def test_story_word_count_leniency_is_a_ratio():
    # 25 of 30 words is within the 80% band; 15 is not
    near = check_completeness(_doc(words=25), THRESHOLDS)
    assert near.is_near_complete
    far = check_completeness(_doc(words=15), THRESHOLDS)
    assert not far.is_acceptable


def test_missing_symbols_are_never_near_complete():
    report = check_completeness(_doc(symbols=0), THRESHOLDS)
    assert report.incomplete == ["analysis"]
    assert not report.is_acceptable


def test_missing_section_is_never_near_complete():
    doc = _doc().without("worldMap")
    report = check_completeness(doc, THRESHOLDS)
    assert report.missing == ["worldMap"]
    assert not report.is_near_complete


def test_unparsed_section_counts_as_missing():
    report = check_completeness(_doc(ancientLanguage="nothing"), THRESHOLDS)
    assert report.missing == ["ancientLanguage"]


def test_scope_limits_checked_sections():
    doc = PartialMythDocument.from_record(
        {"story": story_record(), "entities": entity_records(5)}
    )
    report = check_completeness(doc, THRESHOLDS, ["story", "entities"])
    assert report.is_complete
