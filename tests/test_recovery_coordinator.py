# tests/test_recovery_coordinator.py
import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from conftest import (
    ScriptedLLM,
    analysis_record,
    entity_records,
    language_record,
    story_record,
    world_record,
)

from config import settings
from core.exceptions import ProviderError
from models.myth_models import PartialMythDocument
from orchestration.recovery_coordinator import (
    RecoveryCoordinator,
    salvage_vocabulary,
    sections_from_response,
)

SCOPE = ["ancientLanguage"]


def _working(vocabulary=1):
    return PartialMythDocument.from_record(
        {
            "story": story_record(),
            "entities": entity_records(3),
            "ancientLanguage": language_record(vocabulary),
        }
    )


def _vocabulary_response(truncated=True):
    words = json.dumps(language_record(4, prefix="kor")["vocabulary"])[1:-1]
    text = '{"ancientLanguage": {"languageName": "Tidetongue", "vocabulary": [' + words
    return text + ', {"word": "zz' if truncated else text + "]}}"


def test_salvage_vocabulary_from_broken_text():
    text = 'noise "vocabulary": [{"word": "vela"}, {"word": "velb",}] more noise {'
    assert salvage_vocabulary(text) == [{"word": "vela"}, {"word": "velb"}]
    assert salvage_vocabulary("no array here") is None


def test_lone_section_without_wrapper_is_wrapped():
    text = json.dumps(language_record(2))
    sections = sections_from_response(text, ["ancientLanguage"])
    assert list(sections) == ["ancientLanguage"]
    assert len(sections["ancientLanguage"]["vocabulary"]) == 2


def test_response_is_filtered_to_targets_plus_social_code():
    text = json.dumps(
        {
            "analysis": analysis_record(3),
            "socialCode": {"sacred": "Salt"},
            "story": story_record(),
        }
    )
    assert set(sections_from_response(text, ["analysis"])) == {"analysis", "socialCode"}


@pytest.mark.asyncio
async def test_truncated_vocabulary_is_recovered(small_thresholds):
    llm = ScriptedLLM(_vocabulary_response())
    statuses = []
    coordinator = RecoveryCoordinator(llm, small_thresholds, notify=statuses.append)

    outcome = await coordinator.recover(_working(), SCOPE)

    assert outcome.status.is_recovered
    assert outcome.status.recovered_sections == ["ancientLanguage"]
    assert outcome.attempts == 1
    words = [w.word for w in outcome.document.ancient_language.vocabulary]
    assert words[:5] == ["vela", "kora", "korb", "korc", "kord"]
    # Other sections are left as they were
    assert [e.name for e in outcome.document.entities] == ["Velmora", "Kaethis", "Orrun"]
    assert "GENERATE: ancientLanguage" in llm.prompts[0]
    assert llm.max_tokens == [settings.RECOVERY_MAX_TOKENS]
    assert len(statuses) == 1 and statuses[0].is_recovered


@pytest.mark.asyncio
async def test_acceptable_document_makes_no_calls(small_thresholds):
    llm = AsyncMock()
    outcome = await RecoveryCoordinator(llm, small_thresholds).recover(_working(4), SCOPE)
    assert outcome.status.is_recovered
    llm.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_error_ends_attempt_not_run(small_thresholds):
    llm = ScriptedLLM(ProviderError("boom", provider="openai"), _vocabulary_response(False))
    outcome = await RecoveryCoordinator(llm, small_thresholds).recover(_working(), SCOPE)
    assert outcome.status.is_recovered
    assert outcome.attempts == 2
    assert llm.request_count == 2


@pytest.mark.asyncio
async def test_partial_text_of_failed_call_is_used(small_thresholds):
    error = ProviderError("cut", provider="openai", response_text=_vocabulary_response())
    llm = ScriptedLLM(error)
    outcome = await RecoveryCoordinator(llm, small_thresholds).recover(_working(), SCOPE)
    assert outcome.status.is_recovered
    assert llm.request_count == 1


@pytest.mark.asyncio
async def test_unresolved_after_retry_budget(small_thresholds):
    llm = ScriptedLLM("I cannot help with that.", "{}")
    outcome = await RecoveryCoordinator(llm, small_thresholds).recover(_working(), SCOPE)
    assert not outcome.status.is_recovered
    assert outcome.status.incomplete_sections == ["ancientLanguage"]
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_timeout_keeps_best_document(small_thresholds):
    async def stall(prompt, on_chunk):
        await asyncio.sleep(5)
        return _vocabulary_response()

    llm = ScriptedLLM(stall)
    working = _working()
    coordinator = RecoveryCoordinator(llm, small_thresholds, timeout=0.05)
    outcome = await coordinator.recover(working, SCOPE)
    assert outcome.document is working
    assert not outcome.status.is_recovered


@pytest.mark.asyncio
async def test_forced_sections_are_regenerated_even_when_complete(small_thresholds):
    working = PartialMythDocument.from_record(
        {"story": story_record(), "entities": entity_records(3), "worldMap": world_record(3)}
    )
    fresh = {"worldMap": {"locations": [{"name": "Saltreach", "type": "city"}]}}
    llm = ScriptedLLM(json.dumps(fresh))
    coordinator = RecoveryCoordinator(llm, small_thresholds)

    outcome = await coordinator.recover(working, ["worldMap"], sections=["worldMap"])

    names = [loc.name for loc in outcome.document.world_map.locations]
    assert names == ["Harbor 0", "Harbor 1", "Harbor 2", "Saltreach"]
    assert outcome.status.recovered_sections == ["worldMap"]
    assert llm.request_count == 1
