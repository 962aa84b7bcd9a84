# src/llm/errors.py
"""Standardized AI provider error taxonomy.

Provider-specific failures (SDK exceptions, HTTP status codes) are mapped to
AIProviderError before anything above the provider layer acts on them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

AIErrorType = Literal[
    "rate_limited",
    "timeout",
    "api_error",
    "connection_error",
    "invalid_input",
    "model_unavailable",
    "authentication_failed",
    "circuit_open",
    "unknown",
]


class AIProviderError(Exception):
    """Classified provider failure carrying a retryable flag."""

    def __init__(
        self,
        message: str,
        provider: str,
        error_type: AIErrorType = "unknown",
        status_code: int | None = None,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.error_type = error_type
        self.status_code = status_code
        self.retryable = retryable
        self.context = context or {}

    @classmethod
    def rate_limited(
        cls, provider: str, reset_at: datetime | None = None
    ) -> AIProviderError:
        return cls(
            "Rate limit exceeded for AI provider",
            provider,
            "rate_limited",
            429,
            True,
            {"reset_at": reset_at.isoformat() if reset_at else None},
        )

    @classmethod
    def timeout(cls, provider: str, duration_ms: int) -> AIProviderError:
        return cls(
            f"Request timeout after {duration_ms}ms",
            provider,
            "timeout",
            None,
            True,
            {"duration_ms": duration_ms},
        )

    @classmethod
    def auth_failed(cls, provider: str) -> AIProviderError:
        return cls(
            "Authentication failed - check API key",
            provider,
            "authentication_failed",
            401,
            False,
        )

    @classmethod
    def api_error(
        cls, provider: str, status_code: int, message: str
    ) -> AIProviderError:
        """Server-side failure; only 5xx responses are retryable."""
        return cls(message, provider, "api_error", status_code, status_code >= 500)

    @classmethod
    def connection_error(cls, provider: str) -> AIProviderError:
        return cls(
            "Network connection failed", provider, "connection_error", None, True
        )

    @classmethod
    def model_unavailable(
        cls, provider: str, message: str = "Model temporarily unavailable"
    ) -> AIProviderError:
        return cls(message, provider, "model_unavailable", 503, True)

    @classmethod
    def invalid_input(cls, provider: str, message: str) -> AIProviderError:
        return cls(message, provider, "invalid_input", 400, False)

    @classmethod
    def circuit_open(
        cls, provider: str, open_until: datetime | None = None
    ) -> AIProviderError:
        """Breaker short-circuit. Not retryable against the same provider."""
        return cls(
            f"Circuit breaker open for {provider}",
            provider,
            "circuit_open",
            None,
            False,
            {"open_until": open_until.isoformat() if open_until else None},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for persistence alongside the document record."""
        return {
            "message": self.message,
            "provider": self.provider,
            "type": self.error_type,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "context": self.context,
        }


class ProviderChainError(AIProviderError):
    """Every provider in the chain failed. Carries each (provider, message) pair."""

    def __init__(self, errors: list[tuple[str, str]]):
        self.errors = errors
        details = "; ".join(f"{name}: {msg}" for name, msg in errors)
        super().__init__(
            f"All AI providers failed. Errors: {details}",
            "ProviderChain",
            "unknown",
            None,
            False,
            {"errors": [{"provider": n, "message": m} for n, m in errors]},
        )


class NoProvidersAvailableError(RuntimeError):
    """No configured provider survived the availability filter."""


def map_provider_exception(
    error: Exception, provider: str, timeout_ms: int
) -> AIProviderError:
    """Classify a raw SDK/HTTP exception into the standard taxonomy.

    Checks run in a fixed order: rate limit, auth, timeout, connection,
    5xx, 400, model availability. Anything else is 'unknown', not retryable.
    """
    if isinstance(error, AIProviderError):
        return error

    message = str(error) or type(error).__name__
    lowered = message.lower()
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if not isinstance(status, int):
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
        if not isinstance(status, int):
            status = None

    if status == 429 or "rate limit" in lowered:
        return AIProviderError.rate_limited(provider)
    if status == 401 or "authentication" in lowered:
        return AIProviderError.auth_failed(provider)
    if (
        isinstance(error, TimeoutError)
        or "timeout" in lowered
        or "timed out" in lowered
    ):
        return AIProviderError.timeout(provider, timeout_ms)
    if (
        isinstance(error, ConnectionError)
        or "network" in lowered
        or "connection" in lowered
    ):
        return AIProviderError.connection_error(provider)
    if status is not None and status >= 500:
        return AIProviderError.api_error(provider, status, message)
    if status == 400:
        return AIProviderError.invalid_input(provider, message)
    if "model" in lowered:
        return AIProviderError.model_unavailable(provider)
    return AIProviderError(message, provider, "unknown", status, False)
