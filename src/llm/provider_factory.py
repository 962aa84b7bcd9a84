# src/llm/provider_factory.py
"""Factory: build summarization providers and the default fallback chain.

Providers are registered by name with a lazily imported class path, so
optional SDKs are only imported when the provider is actually built.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from budgetdigest.config.settings import Settings
from budgetdigest.llm.base_provider import BaseAIProvider
from budgetdigest.llm.circuit_breaker import CircuitBreaker
from budgetdigest.llm.provider_chain import ProviderChain
from budgetdigest.llm.rate_limiter import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

# Registry of provider name -> class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "budgetdigest.llm.providers.openai_provider.OpenAIProvider",
    "huggingface": "budgetdigest.llm.providers.huggingface_provider.HuggingFaceProvider",
    "extractive": "budgetdigest.llm.providers.extractive_provider.ExtractiveProvider",
}

DEFAULT_CHAIN_ORDER = ("openai", "huggingface", "extractive")


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def _provider_kwargs(
    name: str, settings: Settings, rate_limiter: RateLimiter
) -> dict[str, Any]:
    if name == "openai":
        return {
            "api_key": settings.openai_api_key,
            "model": settings.openai_model,
            "timeout_ms": settings.openai_timeout_ms,
            "max_retries": settings.openai_max_retries,
            "retry_base_delay_ms": settings.openai_retry_base_delay_ms,
            "temperature": settings.openai_temperature,
            "context_window": settings.openai_context_window,
            "max_output_tokens": settings.openai_max_output_tokens,
            "rate_limiter": rate_limiter,
            "breaker": CircuitBreaker(
                "OpenAI",
                settings.openai_circuit_threshold,
                settings.openai_circuit_cooldown_s,
            ),
        }
    if name == "huggingface":
        return {
            "api_key": settings.hugging_face_api_key,
            "model": settings.hugging_face_model,
            "timeout_ms": settings.hugging_face_timeout_ms,
            "max_retries": settings.hugging_face_max_retries,
            "rate_limiter": rate_limiter,
            "breaker": CircuitBreaker(
                "HuggingFace",
                settings.hugging_face_circuit_threshold,
                settings.hugging_face_circuit_cooldown_s,
            ),
        }
    return {}


def create_provider(
    name: str,
    settings: Settings,
    rate_limiter: RateLimiter | None = None,
    **kwargs: Any,
) -> BaseAIProvider:
    """Instantiate a registered provider configured from settings.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if name not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported provider: {name!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )
    provider_cls = _import_class(_PROVIDER_REGISTRY[name])
    init_kwargs = _provider_kwargs(name, settings, rate_limiter or get_rate_limiter(settings))
    init_kwargs.update(kwargs)
    logger.debug("Creating provider: %s", name)
    return provider_cls(**init_kwargs)


def build_default_chain(
    settings: Settings,
    rate_limiter: RateLimiter | None = None,
    order: tuple[str, ...] = DEFAULT_CHAIN_ORDER,
) -> ProviderChain:
    """OpenAI -> HuggingFace -> Extractive, unavailable ones filtered out."""
    limiter = rate_limiter or get_rate_limiter(settings)
    return ProviderChain([create_provider(n, settings, limiter) for n in order])


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseAIProvider.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
