# tests/test_parsing.py
import json

import pytest

from parsing import ParseError, ParseStrategy, parse_structured_text
from parsing.brace_scanner import (
    complete_truncated_object,
    find_matching_close,
    isolate_object,
)
from parsing.repair import repair_json_text


def test_direct_parse():
    outcome = parse_structured_text('{"story": {"title": "Ash"}}')
    assert outcome.strategy is ParseStrategy.DIRECT
    assert outcome.data["story"]["title"] == "Ash"


def test_brace_isolation_ignores_braces_in_leading_prose():
    text = 'Here is {your} myth:\n{"story": {"title": "Ash"}}\nHope you enjoy it!'
    outcome = parse_structured_text(text)
    assert outcome.strategy is ParseStrategy.BRACE_ISOLATION
    assert outcome.data == {"story": {"title": "Ash"}}


def test_repair_handles_trailing_commas_and_bare_keys():
    outcome = parse_structured_text("{story: {title: 'Ash', text: \"x\",},}")
    assert outcome.strategy is ParseStrategy.REPAIR
    assert outcome.data == {"story": {"title": "Ash", "text": "x"}}


def test_repaired_isolation():
    outcome = parse_structured_text("Result:\n{entities: [{'name': 'Orrun'},]}\n-- end")
    assert outcome.strategy is ParseStrategy.REPAIRED_ISOLATION
    assert outcome.data["entities"][0]["name"] == "Orrun"


def test_truncated_text_fails_without_truncation_strategy():
    with pytest.raises(ParseError):
        parse_structured_text('{"story": {"title": "Ash", "text": "Long ago')


def test_truncation_strategy_closes_open_structures():
    outcome = parse_structured_text(
        '{"ancientLanguage": {"vocabulary": [{"word": "vel"}, {"word": "ka',
        allow_truncation=True,
    )
    assert outcome.strategy is ParseStrategy.TRUNCATION
    words = [w["word"] for w in outcome.data["ancientLanguage"]["vocabulary"]]
    assert words[0] == "vel"


def test_empty_text_raises():
    with pytest.raises(ParseError):
        parse_structured_text("   ")


def test_find_matching_close_skips_braces_in_strings():
    text = '{"a": "}{", "b": "say \\"}\\"", "c": [1, {"d": 2}]} trailing'
    end = find_matching_close(text, 0)
    assert text[: end + 1].endswith("]}")
    assert json.loads(text[: end + 1])["c"][1]["d"] == 2


def test_isolate_object_returns_none_when_unbalanced():
    assert isolate_object('{"a": {"b": 1}') is None


def test_complete_truncated_object_fills_dangling_colon():
    completed = complete_truncated_object('{"story": {"title":')
    assert json.loads(completed) == {"story": {"title": ""}}


def test_complete_truncated_object_drops_dangling_comma():
    completed = complete_truncated_object('{"entities": [{"name": "Orrun"},')
    assert json.loads(completed) == {"entities": [{"name": "Orrun"}]}


def test_repair_leaves_string_contents_alone():
    repaired = repair_json_text('{"text": "a, } b", note: “curly”,}')
    assert json.loads(repaired) == {"text": "a, } b", "note": "curly"}


def test_repair_strips_control_characters():
    repaired = repair_json_text('{"text": "line\x07one"}')
    assert json.loads(repaired) == {"text": "lineone"}


def test_non_ascii_narration_before_truncated_object():
    text = 'Énfin, le mythe:\n{"story": {"title": "Ash", "text": "Long ago'
    with pytest.raises(ParseError):
        parse_structured_text(text)
    outcome = parse_structured_text(text, allow_truncation=True)
    assert outcome.strategy is ParseStrategy.TRUNCATION
    assert outcome.data["story"]["text"] == "Long ago"


def test_apostrophe_in_leading_narration_does_not_swallow_the_object():
    text = (
        "Here's the myth you asked for:\n"
        '{"story": {"title": "Aether\'s Fall", "text": "x",},}'
    )
    outcome = parse_structured_text(text)
    assert outcome.strategy is ParseStrategy.REPAIR
    assert outcome.data == {"story": {"title": "Aether's Fall", "text": "x"}}


def test_apostrophe_in_trailing_narration():
    outcome = parse_structured_text('{"story": {"title": "Ash",},}\nThat\'s all, enjoy!')
    assert outcome.strategy is ParseStrategy.REPAIRED_ISOLATION
    assert outcome.data == {"story": {"title": "Ash"}}


def test_repair_quotes_non_ascii_bare_keys():
    repaired = repair_json_text('{ánimo: "calma", Ésta: 2,}')
    assert json.loads(repaired) == {"ánimo": "calma", "Ésta": 2}


def test_repair_passes_through_words_outside_objects():
    assert repair_json_text("À bientôt 42") == "À bientôt 42"
