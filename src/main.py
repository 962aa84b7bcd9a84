# src/main.py
"""CLI entry point: process, status, retry, publish and health commands.

Usage:
    budgetdigest process <file> [--title TITLE]
    budgetdigest status [document_id]
    budgetdigest retry {extraction,summarization,translation} <document_id>
    budgetdigest publish <document_id> [--undo]
    budgetdigest health
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from budgetdigest.version import __version__

if TYPE_CHECKING:
    from budgetdigest.config.settings import Settings
    from budgetdigest.core.models import Document

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from budgetdigest.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="budgetdigest",
        description=f"budgetdigest v{__version__}: budget PDF extraction, summarization and translation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- process ---
    p_process = subparsers.add_parser(
        "process", help="Upload a document and run the full pipeline",
    )
    p_process.add_argument("file", type=Path, help="Path to PDF (or plain text)")
    p_process.add_argument("--title", default="", help="Document title")
    p_process.set_defaults(func=_cmd_process)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show document state")
    p_status.add_argument(
        "document_id", nargs="?", default=None,
        help="Document to show (default: list all)",
    )
    p_status.set_defaults(func=_cmd_status)

    # --- retry ---
    p_retry = subparsers.add_parser("retry", help="Reset a stage and run it again")
    p_retry.add_argument(
        "stage", choices=["extraction", "summarization", "translation"],
    )
    p_retry.add_argument("document_id")
    p_retry.set_defaults(func=_cmd_retry)

    # --- publish ---
    p_publish = subparsers.add_parser("publish", help="Publish or unpublish a document")
    p_publish.add_argument("document_id")
    p_publish.add_argument("--undo", action="store_true", help="Unpublish instead")
    p_publish.set_defaults(func=_cmd_publish)

    # --- health ---
    p_health = subparsers.add_parser(
        "health", help="Test providers and show rate-limit usage",
    )
    p_health.set_defaults(func=_cmd_health)

    return parser


async def _cmd_process(args: argparse.Namespace, settings: Settings) -> int:
    """Run one document through extraction, summarization and translation."""
    from budgetdigest.pipeline.builder import build_pipeline

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    pipeline = build_pipeline(settings)
    doc = await pipeline.process(file_path, title=args.title)
    _print_document(doc)
    return 0 if doc.extraction_status != "failed" else 1


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    from budgetdigest.store.factory import create_document_store

    documents = create_document_store(settings)
    if args.document_id:
        _print_document(await documents.get(args.document_id))
        return 0

    for doc in await documents.list_documents():
        print(
            f"{doc.id}  {doc.file_name:<40} "
            f"extract={doc.extraction_status} summary={doc.summarization_status} "
            f"translate={doc.translation_status} publish={doc.publish_status}"
        )
    return 0


async def _cmd_retry(args: argparse.Namespace, settings: Settings) -> int:
    from budgetdigest.pipeline import actions
    from budgetdigest.pipeline.builder import build_pipeline

    pipeline = build_pipeline(settings)
    action = {
        "extraction": actions.retry_extraction,
        "summarization": actions.retry_summarization,
        "translation": actions.request_translation,
    }[args.stage]
    try:
        await action(pipeline.documents, pipeline.dispatcher, args.document_id)
    except actions.ActionRejectedError as exc:
        print(f"Rejected: {exc}", file=sys.stderr)
        return 1
    await pipeline.dispatcher.drain()
    _print_document(await pipeline.documents.get(args.document_id))
    return 0


async def _cmd_publish(args: argparse.Namespace, settings: Settings) -> int:
    from budgetdigest.pipeline import actions
    from budgetdigest.store.factory import create_document_store

    documents = create_document_store(settings)
    try:
        if args.undo:
            doc = await actions.unpublish(documents, args.document_id)
        else:
            doc = await actions.publish(documents, args.document_id)
    except actions.ActionRejectedError as exc:
        print(f"Rejected: {exc}", file=sys.stderr)
        return 1
    print(f"{doc.id}: {doc.publish_status}")
    return 0


async def _cmd_health(args: argparse.Namespace, settings: Settings) -> int:
    from budgetdigest.api.health import provider_health
    from budgetdigest.llm.provider_factory import build_default_chain
    from budgetdigest.llm.rate_limiter import get_rate_limiter

    limiter = get_rate_limiter(settings)
    report = await provider_health(build_default_chain(settings, limiter), limiter)
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    return 0 if report.healthy else 1


def _print_document(doc: Document) -> None:
    """Print a human-readable view of a Document."""
    print(f"\nDocument {doc.id} ({doc.file_name}):")
    print(f"  Extraction:     {doc.extraction_status}", end="")
    if doc.char_count is not None:
        print(f"  ({doc.char_count} chars, {doc.page_count} pages)", end="")
    print()
    if doc.extraction_error or doc.extraction_warning:
        print(f"    {doc.extraction_error or doc.extraction_warning}")
    print(f"  Summarization:  {doc.summarization_status}", end="")
    if doc.summary_confidence is not None:
        print(
            f"  (via {doc.summary_provider}, confidence {doc.summary_confidence:.2f})",
            end="",
        )
    print()
    if doc.summary_error:
        print(f"    {doc.summary_error}")
    print(f"  Translation:    {doc.translation_status}")
    if doc.translation_error:
        print(f"    {doc.translation_error}")
    if doc.summary_text:
        preview = doc.summary_text[:300]
        if len(doc.summary_text) > 300:
            preview += "..."
        print(f"\n{preview}")


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from budgetdigest.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
