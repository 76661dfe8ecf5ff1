# config.py
"""Configuration settings for the MythForge generation pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import os
from typing import Literal

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class MythForgeSettings(BaseSettings):
    """Full configuration for the MythForge system."""

    # API and Model Configuration
    LLM_PROVIDER: Literal["openai", "ollama"] = "openai"
    OPENAI_API_BASE: str = "http://127.0.0.1:8080/v1"
    OPENAI_API_KEY: str = "nope"
    OLLAMA_API_BASE: str = "http://127.0.0.1:11434"

    MAIN_GENERATION_MODEL: str = "Qwen3-14B"
    # Ask OpenAI-compatible backends for a JSON object response.
    LLM_JSON_MODE: bool = True

    # LLM Call Settings & Fallbacks
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_DELAY_SECONDS: float = 3.0
    HTTPX_TIMEOUT: float = 600.0
    TIKTOKEN_DEFAULT_ENCODING: str = "cl100k_base"
    FALLBACK_CHARS_PER_TOKEN: float = 4.0
    TOKENIZER_CACHE_SIZE: int = 10
    # Concurrency and Rate Limiting
    MAX_CONCURRENT_LLM_CALLS: int = 4

    LLM_TOP_P: float = 0.95

    # Generation Parameters
    GENERATION_TEMPERATURE: float = 0.9
    MAX_GENERATION_TOKENS: int = 16384
    OUTPUT_TOKEN_STEPS: list[int] = Field(default_factory=list)
    CONTEXT_OVERFLOW_MAX_RETRIES: int = 3
    PHASE_TIMEOUT_SECONDS: float = 300.0
    PHASE2_TIMEOUT_SECONDS: float = 600.0
    PARTIAL_SALVAGE_MIN_CHARS: int = 100

    # Completeness Thresholds
    MIN_ENTITIES: int = 5
    MIN_LOCATIONS: int = 5
    MIN_VOCABULARY: int = 10
    MIN_TIMELINE_EVENTS: int = 5
    MIN_STORY_LENGTH: int = 50
    MIN_STORY_WORD_COUNT: int = 600
    NEAR_COMPLETE_STORY_RATIO: float = 0.8

    # Recovery
    RECOVERY_MAX_RETRIES: int = 2
    RECOVERY_MAX_TOKENS: int = 4000
    RECOVERY_TIMEOUT_SECONDS: float = 600.0

    # Fidelity
    FIDELITY_RETRY_THRESHOLD: float = 70.0
    FIDELITY_TERM_MATCH_RATIO: float = 0.5
    FIDELITY_FUZZY_CUTOFF: float = 88.0

    # Streaming progress snippets
    STREAM_EMIT_INTERVAL_SECONDS: float = 2.0
    STREAM_MAX_BUFFER_CHARS: int = 400
    STREAM_SENTENCES_PER_SNIPPET: int = 2

    # Prompt Context Snippets
    STORY_PREVIEW_CHARS: int = 2000
    ENTITY_DESCRIPTION_PREVIEW_CHARS: int = 200
    STORY_EXCERPT_CHARS: int = 500
    RESPONSE_PREVIEW_CHARS: int = 200

    # Inline Jinja2 templates replacing the bundled prompts when set
    PHASE1_PROMPT_OVERRIDE: str | None = None
    PHASE2_PROMPT_OVERRIDE: str | None = None
    ENHANCED_RETRY_PROMPT_OVERRIDE: str | None = None

    # Output and File Paths
    BASE_OUTPUT_DIR: str = "myth_output"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="AGENT_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "mythforge_run.log"
    ENABLE_RICH_PROGRESS: bool = True

    @model_validator(mode="after")
    def set_dynamic_generation_defaults(self) -> MythForgeSettings:
        if not self.OUTPUT_TOKEN_STEPS:
            steps = [self.MAX_GENERATION_TOKENS]
            while steps[-1] > 2048:
                steps.append(steps[-1] // 2)
            self.OUTPUT_TOKEN_STEPS = steps
        if any(b >= a for a, b in zip(self.OUTPUT_TOKEN_STEPS, self.OUTPUT_TOKEN_STEPS[1:])):
            raise ValueError("OUTPUT_TOKEN_STEPS must be strictly decreasing")
        if self.LLM_PROVIDER == "openai" and self.OPENAI_API_KEY == "nope":
            logger.warning(
                "OPENAI_API_KEY is still the placeholder value; hosted providers will reject it."
            )
        if not 0 < self.NEAR_COMPLETE_STORY_RATIO <= 1:
            raise ValueError("NEAR_COMPLETE_STORY_RATIO must be in (0, 1]")
        if not 0 < self.FIDELITY_TERM_MATCH_RATIO <= 1:
            raise ValueError("FIDELITY_TERM_MATCH_RATIO must be in (0, 1]")
        return self

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")


settings = MythForgeSettings()

# Ensure output directories exist
os.makedirs(settings.BASE_OUTPUT_DIR, exist_ok=True)
