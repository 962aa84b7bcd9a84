# src/pipeline/errors.py
"""Stage-level exceptions seen by the job runtime.

The runtime re-invokes a handler only when the raised error is retryable.
"""

from __future__ import annotations


class StageError(Exception):
    """Base class for stage failures carrying the persisted error type."""

    retryable: bool = False

    def __init__(self, message: str, error_type: str = "unknown") -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type


class PreconditionError(StageError):
    """Stage invoked while the document is in the wrong state."""


class RetryableStageError(StageError):
    """Transient failure; the runtime should re-invoke the handler."""

    retryable = True


def is_retryable(error: BaseException) -> bool:
    """Unknown exception types are retried, as a job runtime would."""
    if isinstance(error, StageError):
        return error.retryable
    return True
