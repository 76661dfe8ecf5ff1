# tests/test_section_merge.py
from conftest import entity_records, language_record, world_record

from models.myth_models import AncientWord, PartialMythDocument
from processing.section_merge import merge_by_key, merge_partial_documents, merge_section


def _words(*pairs):
    return [AncientWord(word=w, meaning=m) for w, m in pairs]


def test_merge_by_key_is_a_union_with_generated_winning():
    original = _words(("vel", "sky"), ("ka", "stone"), ("ori", "sea"))
    generated = _words(("KA ", "mountain"), ("thu", "fire"), ("nem", "night"))
    merged = merge_by_key(original, generated, lambda w: w.word)
    assert [w.word for w in merged] == ["vel", "KA ", "ori", "thu", "nem"]
    assert merged[1].meaning == "mountain"
    # |A ∪ B| for keys compared case-insensitively after trimming
    assert len(merged) == 5


def test_merge_keeps_blank_keyed_originals_and_ignores_blank_generated():
    original = [{"k": ""}, {"k": "a"}]
    generated = [{"k": "  "}, {"k": "b"}]
    merged = merge_by_key(original, generated, lambda item: item["k"])
    assert merged == [{"k": ""}, {"k": "a"}, {"k": "b"}]


def test_merge_partial_documents_merges_lists_by_key():
    base = PartialMythDocument.from_record(
        {"ancientLanguage": language_record(3), "worldMap": world_record(2)}
    )
    update = PartialMythDocument.from_record(
        {
            "ancientLanguage": {
                "vocabulary": [{"word": "vela", "meaning": "renewed"}, {"word": "zora"}],
            },
            "worldMap": {"locations": [{"name": "Harbor 1", "type": "ruin"}]},
        }
    )
    merged = merge_partial_documents(base, update)
    vocabulary = merged.ancient_language.vocabulary
    assert [w.word for w in vocabulary] == ["vela", "velb", "velc", "zora"]
    assert vocabulary[0].meaning == "renewed"
    # Blank fields in the update keep the original value
    assert merged.ancient_language.language_name == "Tidetongue"
    locations = merged.world_map.locations
    assert [loc.name for loc in locations] == ["Harbor 0", "Harbor 1"]
    assert locations[1].type == "ruin"


def test_absent_or_unparsed_update_sections_leave_base_untouched():
    base = PartialMythDocument.from_record({"entities": entity_records(3)})
    update = PartialMythDocument.from_record({"entities": "garbage"})
    merged = merge_partial_documents(base, update)
    assert [e.name for e in merged.entities] == ["Velmora", "Kaethis", "Orrun"]


def test_merge_restricted_to_sections():
    base = PartialMythDocument.from_record({"entities": entity_records(1)})
    update = PartialMythDocument.from_record(
        {"entities": entity_records(3), "worldMap": world_record(1)}
    )
    merged = merge_partial_documents(base, update, ["worldMap"])
    assert len(merged.entities) == 1
    assert merged.is_present("worldMap")


def test_overlapping_entity_lists_merge_to_their_union():
    original = PartialMythDocument.from_record({"entities": entity_records(3)}).entities
    update = [dict(entity_records(3)[1], description="Renamed keeper."), {"name": "Sylvane"}]
    generated = PartialMythDocument.from_record({"entities": update}).entities
    merged = merge_section("entities", original, generated)
    assert [e.name for e in merged] == ["Velmora", "Kaethis", "Orrun", "Sylvane"]
    assert merged[1].description == "Renamed keeper."
