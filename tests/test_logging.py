# tests/test_logging.py
import importlib
import logging
import logging as std_logging

import structlog

from config import settings

import utils.logging as logging_utils


def test_setup_logging_uses_plain_stream_without_rich(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    monkeypatch.setattr(settings, "LOG_FILE", "")
    logging_utils.setup_logging()
    handlers = std_logging.getLogger().handlers
    assert [type(h) for h in handlers] == [std_logging.StreamHandler]
    assert std_logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_file_error(monkeypatch, caplog):
    caplog.set_level(logging.ERROR)
    root_logger = std_logging.getLogger()

    class Handlers(list):
        def clear(self):
            pass

    root_logger.handlers = Handlers([caplog.handler])

    logging_utils.structlog.configure(
        logger_factory=logging_utils.structlog.stdlib.LoggerFactory()
    )
    importlib.reload(logging_utils)

    def raise_handler(*_a, **_k):
        raise OSError("fail")

    monkeypatch.setattr(std_logging.handlers, "RotatingFileHandler", raise_handler)
    monkeypatch.setattr(settings, "LOG_FILE", "temp.log")
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)

    logging_utils.setup_logging()

    assert any(
        "Error setting up file logger" in record.message for record in caplog.records
    )
    root_logger.handlers = []


def test_run_context_prefixes_the_message():
    event = logging_utils.prefix_run_context(
        None,
        "info",
        {"event": "Response parsed.", "generation": 3, "phase": "parsing", "strategy": "repair"},
    )
    assert event == {"event": "[gen 3 parsing] Response parsed.", "strategy": "repair"}


def test_records_without_run_context_are_untouched():
    event = logging_utils.prefix_run_context(None, "info", {"event": "Idle."})
    assert event == {"event": "Idle."}


def test_bound_run_context_reaches_stdlib_handlers(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    monkeypatch.setattr(settings, "LOG_FILE", "")
    logging_utils.setup_logging()
    messages = []

    class Collect(std_logging.Handler):
        def emit(self, record):
            messages.append(record.getMessage())

    std_logging.getLogger().addHandler(Collect())
    logging_utils.bind_run_context(generation=7, phase="requesting")
    try:
        structlog.get_logger("tests.run_context").info("Phase call started.")
    finally:
        logging_utils.clear_run_context()
    assert messages[-1] == "[gen 7 requesting] Phase call started."
    assert "generation" not in structlog.contextvars.get_contextvars()
    std_logging.getLogger().handlers = []
