# tests/unit/test_main.py
"""Tests for main.py: CLI entry point."""

from __future__ import annotations

import logging
import typing
from pathlib import Path

import pytest

from budgetdigest import main as main_module
from budgetdigest.config.settings import Settings
from budgetdigest.core.models import Document
from budgetdigest.main import _build_parser, main
from budgetdigest.version import __version__


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """No .env, in-memory records, objects under tmp_path, no provider keys."""
    monkeypatch.chdir(tmp_path)
    for key in ("OPENAI_API_KEY", "HUGGING_FACE_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DOCUMENT_STORE", "memory")
    monkeypatch.setenv("OBJECT_STORE_ROOT", str(tmp_path / "objects"))
    monkeypatch.setenv("LOG_FORMAT", "text")
    yield tmp_path
    logging.getLogger("budgetdigest").handlers.clear()


class TestBuildParser:
    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_process_subcommand(self):
        args = _build_parser().parse_args(["process", "budget.pdf", "--title", "FY26"])
        assert args.command == "process"
        assert args.file == Path("budget.pdf")
        assert args.title == "FY26"

    def test_retry_subcommand(self):
        args = _build_parser().parse_args(["retry", "summarization", "doc-1"])
        assert args.stage == "summarization"
        assert args.document_id == "doc-1"

    def test_retry_rejects_unknown_stage(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["retry", "publication", "doc-1"])

    def test_publish_undo(self):
        args = _build_parser().parse_args(["publish", "doc-1", "--undo"])
        assert args.undo is True

    def test_status_optional_id(self):
        assert _build_parser().parse_args(["status"]).document_id is None


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_configuration_error(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("OBJECT_STORE", "s3")
        assert main(["status"]) == 2
        assert "S3_BUCKET" in capsys.readouterr().err

    def test_process_plain_text(self, cli_env, capsys):
        source = cli_env / "budget.txt"
        source.write_text(
            " ".join(
                [
                    "The National Treasury presented the budget estimates.",
                    "Education receives the largest allocation at KSh 628 billion.",
                    "Health spending rises to KSh 141 billion.",
                ]
                * 30
            )
        )
        assert main(["process", str(source), "--title", "Budget"]) == 0
        out = capsys.readouterr().out
        assert "Extraction:     completed" in out
        assert "Summarization:  completed" in out
        assert "via Extractive" in out
        assert "Translation:    skipped" in out

    def test_process_missing_file(self, cli_env):
        assert main(["process", str(cli_env / "nope.pdf")]) == 1

    def test_status_empty(self, cli_env, capsys):
        assert main(["status"]) == 0
        assert capsys.readouterr().out == ""

    def test_publish_unknown_document(self, cli_env):
        assert main(["publish", "ghost"]) == 1


class TestAnnotations:
    @pytest.mark.parametrize(
        "func,param,expected",
        [
            ("_cmd_process", "settings", Settings),
            ("_cmd_health", "settings", Settings),
            ("_setup_logging", "settings", Settings),
            ("_print_document", "doc", Document),
        ],
    )
    def test_handlers_typed_with_domain_models(self, func, param, expected):
        hints = typing.get_type_hints(
            getattr(main_module, func),
            localns={"Settings": Settings, "Document": Document},
        )
        assert hints[param] is expected
