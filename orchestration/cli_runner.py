# orchestration/cli_runner.py
"""Command-line runner for the myth orchestrator."""

from __future__ import annotations

import asyncio
import json
import os

import structlog

from config import settings
from core.exceptions import MythForgeError
from models.request_models import MythMood
from orchestration.models import GenerationResult
from orchestration.myth_orchestrator import MythOrchestrator
from ui.rich_display import RichDisplayManager
from utils.logging import setup_logging
from yaml_parser import load_request_file

logger = structlog.get_logger(__name__)


def _write_output(result: GenerationResult, output: str | None) -> None:
    payload = json.dumps(result.document.to_record(), indent=2, ensure_ascii=False)
    if output is None:
        print(payload)
        return
    path = output if os.path.isabs(output) else os.path.join(settings.BASE_OUTPUT_DIR, output)
    with open(path, "w", encoding="utf-8") as f:
        f.write(payload)
    logger.info("Wrote mythology document to %s.", path)


async def _run(
    orchestrator: MythOrchestrator,
    request_path: str,
    mood: str | None,
    accept_partial: bool,
) -> GenerationResult | None:
    request = load_request_file(request_path)
    if mood:
        request = request.with_mood(MythMood(mood))

    display = RichDisplayManager()
    unsubscribe = orchestrator.subscribe(display.handle_event)
    display.start()
    try:
        result = await orchestrator.generate_mythology(request)
        if result is not None and not result.is_complete and accept_partial:
            result = orchestrator.accept_partial_result()
        return result
    finally:
        unsubscribe()
        await display.stop()
        await orchestrator.llm.aclose()


def run(
    request_path: str,
    mood: str | None = None,
    accept_partial: bool = False,
    output: str | None = None,
    verbose: bool = False,
) -> int:
    """Run one generation and print or write the document; returns an exit code."""
    setup_logging("DEBUG" if verbose else None)
    orchestrator = MythOrchestrator()
    try:
        result = asyncio.run(_run(orchestrator, request_path, mood, accept_partial))
    except KeyboardInterrupt:
        orchestrator.cancel()
        logger.info("MythForge shutting down gracefully due to KeyboardInterrupt...")
        return 130
    except (MythForgeError, ValueError) as err:
        logger.error("Generation failed: %s", err)
        return 1

    if result is None:
        logger.warning("Generation produced no result.")
        return 1
    _write_output(result, output)
    if not result.is_complete:
        status = result.recovery_status
        logger.warning(
            "Document is incomplete; rerun with --accept-partial to accept it.",
            missing=status.missing_sections if status else [],
            incomplete=status.incomplete_sections if status else [],
        )
        return 2
    return 0
