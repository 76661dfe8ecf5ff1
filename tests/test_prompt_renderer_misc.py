# tests/test_prompt_renderer_misc.py
import prompt_renderer
from conftest import entity_records, story_record
from jinja2 import DictLoader, Environment
from pydantic import BaseModel

from config import settings
from models.myth_models import PartialMythDocument
from orchestration.prompt_builder import (
    build_phase1_prompt,
    build_phase2_prompt,
    build_recovery_prompt,
)


def test_render_prompt_with_custom_env(monkeypatch):
    env = Environment(
        loader=DictLoader({"greet.j2": "Hail {{ name }}"}), autoescape=False
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    assert prompt_renderer.render_prompt("greet.j2", {"name": "Velmora"}) == "Hail Velmora"


class Rune(BaseModel):
    runic_script: str


def test_tojson_keeps_non_ascii_and_models():
    result = prompt_renderer.render_prompt_string(
        "{{ rune | tojson }} {{ note | tojson }}",
        {"rune": Rune(runic_script="ᚹᛖᛚ"), "note": "it's"},
    )
    assert result == '{"runic_script": "ᚹᛖᛚ"} "it\'s"'


def test_phase1_prompt_lists_selections_and_thresholds(request_factory):
    prompt = build_phase1_prompt(request_factory(), request_factory().thresholds)
    assert "Cosmic Egg" in prompt
    assert "at least 30 words" in prompt
    assert "Zeus" in prompt


def test_phase1_override_is_rendered(request_factory, monkeypatch):
    monkeypatch.setattr(settings, "PHASE1_PROMPT_OVERRIDE", "Mood={{ mood }}")
    request = request_factory(mood="dark")
    assert build_phase1_prompt(request, request.thresholds) == "Mood=dark"


def test_phase2_prompt_truncates_story_preview(request_factory, monkeypatch):
    monkeypatch.setattr(settings, "STORY_PREVIEW_CHARS", 40)
    working = PartialMythDocument.from_record(
        {"story": story_record(200), "entities": entity_records(2)}
    )
    request = request_factory()
    prompt = build_phase2_prompt(request, working, request.thresholds, ["worldMap"])
    assert "Generate: worldMap" in prompt
    assert "- Kaethis (spirit): Keeper of the 2th tide gate." in prompt
    assert story_record(200)["text"] not in prompt


def test_recovery_prompt_names_sections_and_shortfalls(small_thresholds):
    working = PartialMythDocument.from_record(
        {"story": story_record(), "entities": entity_records(2)}
    )
    prompt = build_recovery_prompt(
        working, ["ancientLanguage"], small_thresholds, ["ancientLanguage.vocabulary: 1/4"]
    )
    assert 'myth "The Ember Tide"' in prompt
    assert "GENERATE: ancientLanguage" in prompt
    assert "Entities: Velmora, Kaethis" in prompt
    assert "Locations: None" in prompt
    assert "- ancientLanguage.vocabulary: 1/4" in prompt
    assert "at least 4 entries" in prompt
    assert "timeline" not in prompt
