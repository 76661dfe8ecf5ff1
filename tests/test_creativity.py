# tests/test_creativity.py
from conftest import entity_records, story_record

from models.myth_models import PartialMythDocument
from validation.creativity import check_creativity


def test_original_document_passes():
    doc = PartialMythDocument.from_record(
        {"story": story_record(), "entities": entity_records(3)}
    )
    assert check_creativity(doc).is_creative


def test_borrowed_names_are_reported_once():
    story = story_record()
    story["text"] += " Zeus watched. ZEUS wept. Thorn grew."
    doc = PartialMythDocument.from_record({"story": story})
    report = check_creativity(doc)
    assert report.borrowed_names == ["zeus"]
    assert report.issues == ['Existing mythological name "zeus" used']


def test_generic_and_short_entity_names():
    entities = entity_records(3)
    entities[0]["name"] = "The Spirit"
    entities[1]["name"] = "Yu"
    doc = PartialMythDocument.from_record({"entities": entities})
    issues = check_creativity(doc).issues
    assert 'Entity name "The Spirit" is too generic' in issues
    assert 'Entity name "Yu" is too short' in issues


def test_vocabulary_rules():
    doc = PartialMythDocument.from_record(
        {
            "ancientLanguage": {
                "vocabulary": [
                    {"word": "velor", "runicScript": "ᚠᚢ"},
                    {"word": "kathe", "runicScript": "ᚠᚢ"},
                    {"word": "sky stone"},
                    {"word": "sun-fire"},
                ]
            }
        }
    )
    issues = check_creativity(doc).issues
    assert issues == [
        '"kathe" shares runes with "velor": ᚠᚢ',
        '"sky stone" is a multi-word phrase',
        '"sun-fire" looks like a compound English word',
    ]
