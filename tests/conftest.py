# tests/conftest.py
import asyncio
import os
import sys
import tempfile

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Settings are read at import time, so these must be set before config loads
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ENABLE_RICH_PROGRESS", "false")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("BASE_OUTPUT_DIR", tempfile.mkdtemp(prefix="mythforge-tests-"))

from models.request_models import GenerationRequest, MythCategory, Thresholds  # noqa: E402

STORY_SENTENCE = "Velmora sang the tides awake."


class ScriptedLLM:
    """Stands in for ``LLMService`` by replaying scripted responses in order.

    A response may be a string (streamed in small chunks when a callback is
    given), an exception to raise, or an async callable taking the prompt
    and the stream callback.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.max_tokens: list[int | None] = []
        self.request_count = 0

    async def generate(
        self,
        prompt,
        *,
        temperature=None,
        max_output_tokens=None,
        on_stream_chunk=None,
    ):
        self.prompts.append(prompt)
        self.max_tokens.append(max_output_tokens)
        self.request_count += 1
        if not self.responses:
            raise AssertionError("ScriptedLLM ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return await response(prompt, on_stream_chunk)
        if on_stream_chunk is not None:
            for i in range(0, len(response), 40):
                on_stream_chunk(response[i : i + 40])
        await asyncio.sleep(0)
        return response

    async def aclose(self):
        pass


def story_record(words: int = 40, title: str = "The Ember Tide") -> dict:
    repeats = words // len(STORY_SENTENCE.split()) + 1
    return {"title": title, "text": " ".join([STORY_SENTENCE] * repeats), "mood": "epic"}


def entity_records(count: int) -> list[dict]:
    names = ["Velmora", "Kaethis", "Orrun", "Sylvane", "Drevok", "Ishari", "Tolmek"]
    return [
        {
            "name": names[i],
            "type": "spirit",
            "archetype": "guardian",
            "description": f"Keeper of the {i + 1}th tide gate.",
            "powers": ["tidecall"],
            "relationships": [
                {"entityName": names[(i + 1) % count], "type": "ally", "description": "oath"}
            ],
        }
        for i in range(count)
    ]


def world_record(locations: int) -> dict:
    return {
        "locations": [
            {"name": f"Harbor {i}", "type": "city", "description": "Salt and lantern light."}
            for i in range(locations)
        ],
        "mapDescription": "An archipelago of tide gates.",
    }


def analysis_record(events: int, symbols: int = 1) -> dict:
    return {
        "timeline": [
            {"step": i + 1, "title": f"Age {i + 1}", "description": "The waters turned."}
            for i in range(events)
        ],
        "symbols": [{"symbol": f"Shell {i}", "target": "memory"} for i in range(symbols)],
        "socialCode": {"sacred": "The tide", "forbidden": "Silence", "forgivable": "Doubt"},
    }


def language_record(words: int, prefix: str = "vel") -> dict:
    return {
        "languageName": "Tidetongue",
        "vocabulary": [
            {"word": f"{prefix}{chr(97 + i)}", "meaning": f"meaning {i}"} for i in range(words)
        ],
    }


@pytest.fixture
def small_thresholds() -> Thresholds:
    return Thresholds(
        min_entities=3,
        min_locations=3,
        min_vocabulary=4,
        min_timeline_events=3,
        min_story_length=20,
        min_story_word_count=30,
    )


@pytest.fixture
def request_factory(small_thresholds):
    def _make(custom: dict | None = None, mood: str = "epic") -> GenerationRequest:
        selections = {
            MythCategory.COSMOLOGY: "cos-egg",
            MythCategory.GODS: "god-pantheon",
            MythCategory.BEINGS: "being-custom" if custom else "being-fae",
            MythCategory.ARCHETYPE: "arc-trickster",
            MythCategory.THEMES: "theme-cycle",
            MythCategory.SYMBOLS: "sym-water",
            MythCategory.SOCIAL_CODES: "soc-taboo",
        }
        return GenerationRequest(
            selections=selections,
            custom_descriptions=custom or {},
            mood=mood,
            thresholds=small_thresholds,
        )

    return _make
