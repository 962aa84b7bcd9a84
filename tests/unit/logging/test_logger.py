# tests/unit/logging/test_logger.py
"""Tests for logging/logger.py: logger factory and formatters."""

from __future__ import annotations

import json
import logging

from budgetdigest.logging.context import (
    clear_context,
    set_document_context,
    set_provider_context,
    set_stage_context,
)
from budgetdigest.logging.logger import (
    JsonFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "Hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_document_context("doc-1")
        set_stage_context("summarization")
        set_provider_context("OpenAI")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {
            "document_id": "doc-1",
            "stage": "summarization",
            "provider": "OpenAI",
        }

    def test_format_with_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"chunks": 4})))
        assert parsed["data"] == {"chunks": 4}


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "INFO" in output
        assert output.endswith("- Hello text")

    def test_format_with_context(self):
        set_document_context("doc-7")
        set_stage_context("extraction")
        output = TextFormatter().format(_record())
        assert "<doc-7>" in output
        assert "[extraction]" in output


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger("budgetdigest").handlers.clear()

    def test_get_logger_namespaced(self):
        assert get_logger("pipeline").name == "budgetdigest.pipeline"

    def test_setup_text(self):
        setup_logging(level="DEBUG", log_format="text")
        root = logging.getLogger("budgetdigest")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_setup_idempotent_with_file(self, tmp_path):
        setup_logging(log_file=str(tmp_path / "logs" / "run.log"))
        setup_logging(log_file=str(tmp_path / "logs" / "run.log"))
        root = logging.getLogger("budgetdigest")
        assert len(root.handlers) == 2
        assert (tmp_path / "logs").is_dir()
        for handler in root.handlers:
            handler.close()

    def test_sdk_loggers_quieted(self):
        setup_logging(level="INFO", log_format="text")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("botocore").level == logging.WARNING
