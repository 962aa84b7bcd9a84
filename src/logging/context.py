# src/logging/context.py
"""Contextual logging support: attach document_id, stage and provider to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per stage invocation; asyncio tasks inherit a copy.
_document_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    document_id: str | None = None
    stage: str | None = None
    provider: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        document_id=_document_id.get(),
        stage=_stage.get(),
        provider=_provider.get(),
    )


def set_document_context(document_id: str) -> None:
    """Set document-level context (called once per stage invocation)."""
    _document_id.set(document_id)


def set_stage_context(stage: str) -> None:
    _stage.set(stage)


def set_provider_context(provider: str | None) -> None:
    """Tag subsequent records with the provider currently being tried."""
    _provider.set(provider)


def clear_context() -> None:
    """Reset all context variables."""
    _document_id.set(None)
    _stage.set(None)
    _provider.set(None)
