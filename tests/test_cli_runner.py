# tests/test_cli_runner.py
import json

import pytest
import yaml
from conftest import (
    ScriptedLLM,
    analysis_record,
    entity_records,
    language_record,
    story_record,
    world_record,
)

from config import settings
from orchestration import cli_runner
from orchestration.models import (
    GenerationPhase,
    GenerationState,
    RecoveryStatus,
    StateChanged,
    StreamSnippet,
)
from orchestration.myth_orchestrator import MythOrchestrator
from ui.rich_display import RichDisplayManager

SELECTIONS = {
    "cosmology": "cos-egg",
    "gods": "god-pantheon",
    "beings": "being-fae",
    "archetype": "arc-trickster",
    "themes": "theme-cycle",
    "symbols": "sym-water",
    "social codes": "soc-taboo",
}
THRESHOLDS = {
    "min_entities": 3,
    "min_locations": 3,
    "min_vocabulary": 4,
    "min_timeline_events": 3,
    "min_story_length": 20,
    "min_story_word_count": 30,
}


def _document(vocabulary=4):
    return json.dumps(
        {
            "story": story_record(),
            "entities": entity_records(3),
            "worldMap": world_record(3),
            "analysis": analysis_record(3),
            "ancientLanguage": language_record(vocabulary),
        }
    )


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "request.yaml"
    path.write_text(yaml.dump({"selections": SELECTIONS, "thresholds": THRESHOLDS}))
    return str(path)


@pytest.fixture
def scripted(monkeypatch):
    def install(*responses):
        llm = ScriptedLLM(*responses)
        monkeypatch.setattr(cli_runner, "MythOrchestrator", lambda: MythOrchestrator(llm))
        return llm

    monkeypatch.setattr(cli_runner, "setup_logging", lambda level=None: None)
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    return install


def test_run_writes_document(request_file, scripted, tmp_path):
    scripted(_document())
    output = tmp_path / "myth.json"
    assert cli_runner.run(request_file, mood="hopeful", output=str(output)) == 0
    record = json.loads(output.read_text(encoding="utf-8"))
    assert record["story"]["title"] == "The Ember Tide"
    assert record["ancientLanguage"]["vocabulary"][0]["runicScript"] == "ᚹᛖᛚᚨ"


def test_incomplete_document_exit_codes(request_file, scripted, tmp_path):
    output = str(tmp_path / "partial.json")
    scripted(_document(vocabulary=1), *["{}"] * 5)
    assert cli_runner.run(request_file, output=output) == 2

    scripted(_document(vocabulary=1), *["{}"] * 5)
    assert cli_runner.run(request_file, accept_partial=True, output=output) == 0


def test_fatal_errors_exit_with_one(request_file, scripted, tmp_path):
    scripted("not a myth")
    assert cli_runner.run(request_file) == 1
    assert cli_runner.run(str(tmp_path / "missing.yaml")) == 1


def test_display_maps_events(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", True)
    display = RichDisplayManager()
    display.handle_event(StateChanged(GenerationState(phase=GenerationPhase.REQUESTING)))
    display.handle_event(StreamSnippet("Velmora sang."))
    status = RecoveryStatus(incomplete_sections=["ancientLanguage"])
    display.handle_event(StateChanged(GenerationState(recovery_status=status)))
    assert display.status_text_snippet.plain == "Latest: Velmora sang."
    assert display.status_text_recovery.plain == "Recovery: unresolved ancientLanguage"
    assert display.status_text_phase.plain == "Phase: idle"
