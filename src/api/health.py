# src/api/health.py
"""Health and quota reports for operators.

Usage:
    from budgetdigest.api.health import provider_health
    report = await provider_health(chain)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from budgetdigest.llm.circuit_breaker import CircuitStatus
from budgetdigest.llm.provider_chain import ProviderChain, ProviderHealth
from budgetdigest.llm.rate_limiter import RateLimiter, RateLimitStats

logger = logging.getLogger(__name__)


class RateLimitReport(BaseModel):
    provider: str
    stats: RateLimitStats
    approaching_limit: bool
    exceeded: bool


class HealthReport(BaseModel):
    """Aggregate status: ``healthy`` if any provider answered."""

    healthy: bool
    providers: list[ProviderHealth] = Field(default_factory=list)
    circuits: dict[str, CircuitStatus] = Field(default_factory=dict)
    rate_limits: list[RateLimitReport] = Field(default_factory=list)


def rate_limit_report(rate_limiter: RateLimiter) -> list[RateLimitReport]:
    """Usage stats for every provider with a configured budget."""
    reports = []
    for provider in rate_limiter.providers:
        reports.append(
            RateLimitReport(
                provider=provider,
                stats=rate_limiter.get_stats(provider),
                approaching_limit=rate_limiter.is_approaching_limit(provider),
                exceeded=rate_limiter.is_exceeded(provider),
            )
        )
    return reports


async def provider_health(
    chain: ProviderChain, rate_limiter: RateLimiter | None = None
) -> HealthReport:
    """Test every provider in the chain and collect breaker and quota state."""
    providers = await chain.test_all_providers()
    healthy = any(p.healthy for p in providers)
    if not healthy:
        logger.error("No summarization provider is healthy")
    return HealthReport(
        healthy=healthy,
        providers=providers,
        circuits=chain.circuit_status(),
        rate_limits=rate_limit_report(rate_limiter) if rate_limiter else [],
    )
