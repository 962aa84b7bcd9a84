# src/llm/rate_limiter.py
"""Per-provider daily call budget with a scheduled UTC reset.

State is re-initialized lazily: any read at or past reset_at starts a fresh
window before answering. check_limit() has no side effects; increment() is
called exactly once per successful outbound provider call.

Counters live behind RateLimitStore. The in-memory store is process-local;
RedisRateLimitStore shares the budget across processes (RATE_LIMIT_BACKEND=redis).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_DAILY_LIMIT = 100
DEFAULT_RESET_HOUR = 0
NOTICE_THRESHOLD = 0.75
WARNING_THRESHOLD = 0.90


@dataclass(frozen=True)
class RateLimitConfig:
    daily_limit: int
    reset_hour: int = DEFAULT_RESET_HOUR


@dataclass
class RateLimitState:
    count: int
    reset_at: datetime


class RateLimitStatus(BaseModel):
    allowed: bool
    remaining: int
    current: int
    limit: int
    reset_at: datetime


class RateLimitStats(BaseModel):
    current: int
    limit: int
    remaining: int
    percent_used: float
    reset_at: datetime
    time_until_reset_ms: int


def next_reset_time(now: datetime, reset_hour: int) -> datetime:
    """Today at reset_hour UTC, or tomorrow if that hour has already begun."""
    now = now.astimezone(timezone.utc)
    reset = now.replace(hour=reset_hour, minute=0, second=0, microsecond=0)
    if now.hour >= reset_hour:
        reset += timedelta(days=1)
    return reset


# === STORES ===


class RateLimitStore(ABC):
    """Backing store for per-provider counters."""

    @abstractmethod
    def get(self, provider: str) -> RateLimitState | None:
        """Current window state, or None if never initialized."""

    @abstractmethod
    def put(self, provider: str, state: RateLimitState) -> None:
        """Replace the window state (used on lazy re-initialization and reset)."""

    @abstractmethod
    def incr(self, provider: str) -> int:
        """Atomically add one to the current window and return the new count."""


class MemoryRateLimitStore(RateLimitStore):
    """Process-local counters (default)."""

    def __init__(self) -> None:
        self._states: dict[str, RateLimitState] = {}

    def get(self, provider: str) -> RateLimitState | None:
        return self._states.get(provider)

    def put(self, provider: str, state: RateLimitState) -> None:
        self._states[provider] = state

    def incr(self, provider: str) -> int:
        state = self._states[provider]
        state.count += 1
        return state.count


_KEY_PREFIX = "budgetdigest:ratelimit:"


class RedisRateLimitStore(RateLimitStore):
    """Shared counters in Redis: one hash per provider, expiring at reset_at.

    Requires 'redis' package: pip install redis.
    """

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError("redis package required: pip install redis") from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    def get(self, provider: str) -> RateLimitState | None:
        data = self._client.hgetall(f"{_KEY_PREFIX}{provider}")
        if not data or "reset_at" not in data:
            return None
        return RateLimitState(
            count=int(data.get("count", 0)),
            reset_at=datetime.fromisoformat(data["reset_at"]),
        )

    def put(self, provider: str, state: RateLimitState) -> None:
        key = f"{_KEY_PREFIX}{provider}"
        pipe = self._client.pipeline()
        pipe.hset(
            key,
            mapping={"count": state.count, "reset_at": state.reset_at.isoformat()},
        )
        pipe.expireat(key, int(state.reset_at.timestamp()))
        pipe.execute()

    def incr(self, provider: str) -> int:
        return int(self._client.hincrby(f"{_KEY_PREFIX}{provider}", "count", 1))


# === LIMITER ===


class RateLimiter:
    """Daily budget tracker keyed by provider name."""

    def __init__(
        self,
        configs: dict[str, RateLimitConfig],
        store: RateLimitStore | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._configs = dict(configs)
        self._store = store or MemoryRateLimitStore()
        self._clock = clock

    def _config(self, provider: str) -> RateLimitConfig:
        config = self._configs.get(provider)
        if config is None:
            logger.warning(
                "Unknown rate-limited provider %r, using default limit %d/day",
                provider, DEFAULT_DAILY_LIMIT,
            )
            config = RateLimitConfig(DEFAULT_DAILY_LIMIT, DEFAULT_RESET_HOUR)
            self._configs[provider] = config
        return config

    def _state(self, provider: str) -> tuple[RateLimitConfig, RateLimitState]:
        config = self._config(provider)
        now = self._clock()
        state = self._store.get(provider)
        if state is None or now >= state.reset_at:
            if state is not None:
                logger.info("Rate limit window for %s reset", provider)
            state = RateLimitState(0, next_reset_time(now, config.reset_hour))
            self._store.put(provider, state)
        return config, state

    def check_limit(self, provider: str) -> RateLimitStatus:
        """Report whether one more call is allowed. No side effects on the count."""
        config, state = self._state(provider)
        return RateLimitStatus(
            allowed=state.count < config.daily_limit,
            remaining=max(0, config.daily_limit - state.count),
            current=state.count,
            limit=config.daily_limit,
            reset_at=state.reset_at,
        )

    def increment(self, provider: str) -> int:
        """Record one successful call; warns at 75% and 90% utilization."""
        config, _ = self._state(provider)
        count = self._store.incr(provider)
        used = count / config.daily_limit if config.daily_limit else 1.0
        if used >= WARNING_THRESHOLD:
            logger.warning(
                "WARNING: %s rate limit at %d%% (%d/%d)",
                provider, round(used * 100), count, config.daily_limit,
            )
        elif used >= NOTICE_THRESHOLD:
            logger.warning(
                "NOTICE: %s rate limit at %d%% (%d/%d)",
                provider, round(used * 100), count, config.daily_limit,
            )
        return count

    def get_stats(self, provider: str) -> RateLimitStats:
        config, state = self._state(provider)
        now = self._clock()
        percent = (
            round(state.count / config.daily_limit * 100, 1)
            if config.daily_limit
            else 100.0
        )
        return RateLimitStats(
            current=state.count,
            limit=config.daily_limit,
            remaining=max(0, config.daily_limit - state.count),
            percent_used=percent,
            reset_at=state.reset_at,
            time_until_reset_ms=max(
                0, int((state.reset_at - now).total_seconds() * 1000)
            ),
        )

    def reset(self, provider: str) -> None:
        """Manually start a fresh window (admin/testing)."""
        config = self._config(provider)
        self._store.put(
            provider,
            RateLimitState(0, next_reset_time(self._clock(), config.reset_hour)),
        )
        logger.info("Rate limit for %s manually reset", provider)

    def is_approaching_limit(self, provider: str, threshold: float = 0.9) -> bool:
        stats = self.get_stats(provider)
        return stats.percent_used >= threshold * 100

    def is_exceeded(self, provider: str) -> bool:
        return not self.check_limit(provider).allowed

    @property
    def providers(self) -> list[str]:
        return sorted(self._configs)


def build_rate_limiter(settings: Settings, clock: Clock = utc_now) -> RateLimiter:
    """Create a limiter with the configured per-provider budgets and backend."""
    configs = {
        "openai": RateLimitConfig(settings.openai_daily_limit, settings.openai_reset_hour),
        "huggingface": RateLimitConfig(
            settings.hugging_face_daily_limit, settings.hugging_face_reset_hour
        ),
    }
    store: RateLimitStore
    if settings.rate_limit_backend == "redis":
        store = RedisRateLimitStore(settings.rate_limit_redis_url)
    else:
        store = MemoryRateLimitStore()
    return RateLimiter(configs, store, clock)


_default_limiter: RateLimiter | None = None


def get_rate_limiter(settings: Settings | None = None) -> RateLimiter:
    """Process-wide limiter, built from settings on first use."""
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = build_rate_limiter(settings or Settings())
    return _default_limiter
