# tests/unit/pipeline/test_unit_registry_events.py
"""Tests for pipeline/registry.py, pipeline/events.py and pipeline/errors.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from budgetdigest.config.settings import Settings
from budgetdigest.pipeline.errors import (
    PreconditionError,
    RetryableStageError,
    StageError,
    is_retryable,
)
from budgetdigest.pipeline.events import (
    DOCUMENT_UPLOADED,
    EXTRACTION_COMPLETED,
    FUNCTION_FAILED,
    SUMMARIZATION_COMPLETED,
    DocumentUploaded,
    FunctionFailed,
    RecordingEmitter,
    parse_event,
)
from budgetdigest.pipeline.registry import (
    EXTRACT_FUNCTION,
    FAILURE_FUNCTION,
    SUMMARIZE_FUNCTION,
    TRANSLATE_FUNCTION,
    RegistryError,
    StageConfig,
    StageRegistry,
    stage_configs,
)


async def _noop(payload):
    return None


class TestStageConfigs:
    def test_defaults(self):
        configs = stage_configs(Settings(_env_file=None))
        assert configs[EXTRACT_FUNCTION].trigger == DOCUMENT_UPLOADED
        assert configs[EXTRACT_FUNCTION].retries == 3
        assert configs[EXTRACT_FUNCTION].concurrency == 3
        assert configs[SUMMARIZE_FUNCTION].trigger == EXTRACTION_COMPLETED
        assert configs[SUMMARIZE_FUNCTION].concurrency == 2
        assert configs[SUMMARIZE_FUNCTION].timeout_s == 3 * 3600
        assert configs[TRANSLATE_FUNCTION].trigger == SUMMARIZATION_COMPLETED
        assert configs[FAILURE_FUNCTION].trigger == FUNCTION_FAILED
        assert configs[FAILURE_FUNCTION].retries == 0

    def test_settings_override(self):
        configs = stage_configs(Settings(_env_file=None, translation_retries=5))
        assert configs[TRANSLATE_FUNCTION].retries == 5


class TestStageRegistry:
    def test_register_and_lookup(self):
        registry = StageRegistry()
        config = StageConfig(function_id="x", trigger=DOCUMENT_UPLOADED)
        registry.register(config, _noop)
        assert registry.get("x") == (config, _noop)
        assert registry.function_ids == ["x"]
        assert registry.handlers_for(DOCUMENT_UPLOADED) == [(config, _noop)]
        assert registry.handlers_for(FUNCTION_FAILED) == []

    def test_missing(self):
        with pytest.raises(RegistryError, match="not registered"):
            StageRegistry().get("ghost")


class TestEvents:
    def test_parse_event(self):
        payload = parse_event(DOCUMENT_UPLOADED, {"document_id": "d", "file_name": "f.pdf"})
        assert isinstance(payload, DocumentUploaded)
        assert payload.file_size == 0

    def test_parse_function_failed(self):
        payload = parse_event(
            FUNCTION_FAILED,
            {
                "function_id": "summarize-document",
                "error": "boom",
                "event": {"name": EXTRACTION_COMPLETED, "data": {"document_id": "d"}},
            },
        )
        assert isinstance(payload, FunctionFailed)
        assert payload.event.data["document_id"] == "d"

    def test_parse_invalid(self):
        with pytest.raises(ValidationError):
            parse_event(EXTRACTION_COMPLETED, {"document_id": "d"})
        with pytest.raises(KeyError):
            parse_event("document.deleted", {})

    @pytest.mark.asyncio
    async def test_recording_emitter(self):
        emitter = RecordingEmitter()
        await emitter.emit(DOCUMENT_UPLOADED, DocumentUploaded(document_id="d", file_name="f"))
        assert emitter.names() == [DOCUMENT_UPLOADED]
        assert emitter.of(FUNCTION_FAILED) == []


class TestErrors:
    def test_retryable_flags(self):
        assert is_retryable(RetryableStageError("x"))
        assert not is_retryable(StageError("x"))
        assert not is_retryable(PreconditionError("x"))
        assert is_retryable(RuntimeError("x"))

    def test_error_type(self):
        assert StageError("m", "encrypted").error_type == "encrypted"
        assert StageError("m").message == "m"
