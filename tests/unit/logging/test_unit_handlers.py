# tests/unit/logging/test_unit_handlers.py
"""Tests for logging/handlers.py."""

from __future__ import annotations

import pytest

from budgetdigest.logging.handlers import create_rotating_handler, parse_size


class TestParseSize:
    @pytest.mark.parametrize(
        "value,expected",
        [("512B", 512), ("10KB", 10240), ("10MB", 10 * 1024**2), ("1 gb", 1024**3)],
    )
    def test_valid(self, value, expected):
        assert parse_size(value) == expected

    @pytest.mark.parametrize("value", ["", "10", "ten MB", "5TB"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_size(value)


class TestRotatingHandler:
    def test_creates_parent(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "a" / "b.log", "1KB", 3)
        try:
            assert handler.maxBytes == 1024
            assert handler.backupCount == 3
            assert (tmp_path / "a").is_dir()
        finally:
            handler.close()
