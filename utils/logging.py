# utils/logging.py

"""Logging helpers for the MythForge pipeline.

Records are rendered by standard logging handlers. While a generation runs,
the orchestrator binds its generation number and current phase, and every
record logged from that run is prefixed with them.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Any

import structlog
from rich.logging import RichHandler

from config import settings

logger = structlog.get_logger(__name__)

RUN_CONTEXT_KEYS = ("generation", "phase")

__all__ = ["bind_run_context", "clear_run_context", "setup_logging"]


def bind_run_context(**values: Any) -> None:
    """Attach run context (``generation``, ``phase``) to later log records."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.unbind_contextvars(*RUN_CONTEXT_KEYS)


def prefix_run_context(_logger: Any, _method: str, event_dict: dict) -> dict:
    """Move bound run context into the message text.

    The stdlib formatters only render the message, so context kept as extra
    fields would never reach the console or the log file.
    """
    generation = event_dict.pop("generation", None)
    phase = event_dict.pop("phase", None)
    if generation is None and phase is None:
        return event_dict
    label = " ".join(
        part
        for part in (f"gen {generation}" if generation is not None else "", phase or "")
        if part
    )
    event_dict["event"] = f"[{label}] {event_dict.get('event', '')}"
    return event_dict


def _file_handler(file_name: str) -> logging.Handler:
    file_path = (
        file_name
        if os.path.isabs(file_name)
        else os.path.join(settings.BASE_OUTPUT_DIR, file_name)
    )
    log_dir = os.path.dirname(file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        file_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        mode="a",
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
    )
    return handler


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and standard logging for a generation run.

    ``level`` overrides ``settings.LOG_LEVEL_STR``; the CLI passes ``DEBUG``
    for ``--verbose``.
    """
    level_name = (level or settings.LOG_LEVEL_STR).upper()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            prefix_run_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level_name)

    if settings.LOG_FILE:
        try:
            root_logger.addHandler(_file_handler(settings.LOG_FILE))
        except OSError as e:  # pragma: no cover - path issues
            logger.error("Error setting up file logger: %s", e)

    if settings.ENABLE_RICH_PROGRESS:
        root_logger.addHandler(
            RichHandler(
                level=level_name,
                rich_tracebacks=True,
                show_path=False,
                markup=False,
            )
        )
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(
            logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
        )
        root_logger.addHandler(stream_handler)

    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("MythForge logging setup complete.", log_level=level_name)
