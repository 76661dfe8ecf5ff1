# ui/rich_display.py
"""Live progress panel for command-line generations."""

from __future__ import annotations

import asyncio
import time

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from config import settings
from core.llm_interface import llm_service
from orchestration.models import (
    GenerationEvent,
    RecoveryStatus,
    RecoveryStatusChanged,
    StateChanged,
    StreamSnippet,
)
from utils.text_processing import truncate_preview

SNIPPET_PREVIEW_CHARS = 160


class RichDisplayManager:
    """Handles Rich-based display updates."""

    def __init__(self) -> None:
        self.live: Live | None = None
        self.group: Group | None = None
        self.status_text_phase: Text = Text("Phase: idle")
        self.status_text_snippet: Text = Text("Latest: ...")
        self.status_text_recovery: Text = Text("Recovery: not needed")
        self.status_text_requests: Text = Text("LLM Requests: 0")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 0s")
        self.run_start_time: float = 0.0
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: asyncio.Task | None = None

        if settings.ENABLE_RICH_PROGRESS:
            self.group = Group(
                self.status_text_phase,
                self.status_text_snippet,
                self.status_text_recovery,
                self.status_text_requests,
                self.status_text_elapsed_time,
            )
            self.live = Live(
                Panel(
                    self.group,
                    title="MythForge Progress",
                    border_style="magenta",
                    expand=True,
                ),
                refresh_per_second=4,
                transient=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def start(self) -> None:
        if self.live:
            self.run_start_time = time.time()
            self.live.start()
            self._stop_event.clear()
            self._task = asyncio.create_task(self._auto_refresh())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        if self.live and self.live.is_started:
            self.live.stop()

    async def _auto_refresh(self) -> None:
        while not self._stop_event.is_set():
            self.update()
            await asyncio.sleep(1)

    def handle_event(self, event: GenerationEvent) -> None:
        """Orchestrator subscriber that maps events onto the panel."""
        if isinstance(event, StateChanged):
            self.update(phase=event.state.phase.value)
            if event.state.recovery_status is not None:
                self.update(recovery=event.state.recovery_status)
        elif isinstance(event, StreamSnippet):
            self.update(snippet=event.text)
        elif isinstance(event, RecoveryStatusChanged):
            self.update(recovery=event.status)

    def update(
        self,
        phase: str | None = None,
        snippet: str | None = None,
        recovery: RecoveryStatus | None = None,
    ) -> None:
        if not (self.live and self.group):
            return
        if phase is not None:
            self.status_text_phase.plain = f"Phase: {phase}"
        if snippet is not None:
            self.status_text_snippet.plain = (
                f"Latest: {truncate_preview(snippet, SNIPPET_PREVIEW_CHARS)}"
            )
        if recovery is not None:
            if recovery.is_recovered:
                summary = f"recovered {', '.join(recovery.recovered_sections) or 'nothing'}"
            else:
                unresolved = recovery.missing_sections + recovery.incomplete_sections
                summary = f"unresolved {', '.join(unresolved)}"
            self.status_text_recovery.plain = f"Recovery: {summary}"
        self.status_text_requests.plain = f"LLM Requests: {llm_service.request_count}"
        elapsed_seconds = time.time() - self.run_start_time if self.run_start_time else 0
        self.status_text_elapsed_time.plain = (
            f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
        )
