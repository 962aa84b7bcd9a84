# tests/unit/config/test_settings.py
"""Tests for config/settings.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from budgetdigest.config.settings import ConfigurationError, Settings, load_settings


class TestDefaults:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.openai_model == "gpt-3.5-turbo-16k"
        assert s.openai_daily_limit == 100
        assert s.hugging_face_daily_limit == 800
        assert s.chunk_size_tokens == 3000
        assert s.chunk_overlap_tokens == 300
        assert s.min_text_chars == 100
        assert s.summary_batch_size == 3
        assert s.summary_batch_delay_ms == 2000
        assert s.translation_max_chars == 50_000

    def test_derived(self):
        s = Settings(_env_file=None, openai_api_key="sk-x")
        assert s.chunk_size_chars == 12_000
        assert s.translation_configured

    def test_translation_not_configured_without_key(self):
        assert not Settings(_env_file=None).translation_configured


class TestValidation:
    def test_overlap_must_be_smaller(self):
        with pytest.raises(ConfigurationError, match="CHUNK_OVERLAP_TOKENS"):
            Settings(_env_file=None, chunk_size_tokens=100, chunk_overlap_tokens=100)

    def test_negative_overlap(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, chunk_overlap_tokens=-1)

    def test_s3_requires_bucket(self):
        with pytest.raises(ConfigurationError, match="S3_BUCKET"):
            Settings(_env_file=None, object_store="s3")

    def test_redis_requires_url(self):
        with pytest.raises(ConfigurationError, match="RATE_LIMIT_REDIS_URL"):
            Settings(_env_file=None, rate_limit_backend="redis")

    def test_reset_hour_range(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, openai_reset_hour=24)

    def test_errors_are_joined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, object_store="s3", summary_batch_size=0)
        assert "S3_BUCKET" in str(exc_info.value)
        assert "SUMMARY_BATCH_SIZE" in str(exc_info.value)


class TestEnvLoading:
    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_DAILY_LIMIT", "42")
        s = Settings(_env_file=None)
        assert s.openai_api_key == "sk-env"
        assert s.openai_daily_limit == 42

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("HUGGING_FACE_API_KEY=hf_file\nLOG_FORMAT=text\n")
        s = Settings(_env_file=env)
        assert s.hugging_face_api_key == "hf_file"
        assert s.log_format == "text"

    def test_load_settings_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(document_store="memory")
        assert s.document_store == "memory"
