"""Fixed-window rate limiting keyed by actor identity and action class."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Final

from research_commons.core.errors import RateLimitExceeded, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Request cap for one action class."""

    max_requests: int
    window_seconds: int


RATE_LIMITS: Final[dict[str, RateLimitPolicy]] = {
    "read": RateLimitPolicy(max_requests=100, window_seconds=60),
    "write": RateLimitPolicy(max_requests=20, window_seconds=60),
    "auth": RateLimitPolicy(max_requests=10, window_seconds=15 * 60),
    "upload": RateLimitPolicy(max_requests=5, window_seconds=60),
    "report": RateLimitPolicy(max_requests=10, window_seconds=60 * 60),
    "ai": RateLimitPolicy(max_requests=50, window_seconds=60 * 60),
}


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate-limit check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window.
        reset_at: Epoch seconds at which the window closes.
        retry_after: Seconds to wait before retrying; only set on denial.
    """

    allowed: bool
    remaining: int
    reset_at: float
    retry_after: int | None = None


@dataclass
class _Bucket:
    count: int
    reset_at: float


class _Shard:
    __slots__ = ("buckets", "lock", "next_sweep_at")

    def __init__(self) -> None:
        self.buckets: dict[str, _Bucket] = {}
        self.lock = Lock()
        self.next_sweep_at = 0.0


class RateLimiter:
    """In-process limiter holding one counter per (action class, identity).

    Buckets are spread over shards, each guarded by its own lock, so checks
    for unrelated identities do not contend. A bucket whose window has closed
    is replaced when its key is next seen; the rest of a shard's expired
    buckets are dropped at most once per ``sweep_interval`` seconds, which
    defaults to the shortest policy window.
    """

    def __init__(
        self,
        limits: Mapping[str, RateLimitPolicy] | None = None,
        *,
        clock: Callable[[], float] = time.time,
        shard_count: int = 16,
        sweep_interval: float | None = None,
    ) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be positive")
        self._limits = dict(limits or RATE_LIMITS)
        self._clock = clock
        self._shards = [_Shard() for _ in range(shard_count)]
        self._sweep_interval = (
            sweep_interval
            if sweep_interval is not None
            else min((policy.window_seconds for policy in self._limits.values()), default=60)
        )

    @staticmethod
    def _key(action_class: str, identity: str) -> str:
        return f"{action_class}:{identity}"

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def policy(self, action_class: str) -> RateLimitPolicy:
        """Return the policy for ``action_class``."""
        try:
            return self._limits[action_class]
        except KeyError as err:
            raise ValidationError(f"Unknown rate limit class: {action_class}") from err

    def check(
        self,
        actor_id: str | None,
        fallback_identifier: str,
        action_class: str = "read",
    ) -> RateLimitResult:
        """Count one request and report whether it is within the limit.

        The actor id is used as identity when present, otherwise the fallback
        identifier (usually the client IP).
        """
        policy = self.policy(action_class)
        identity = actor_id or fallback_identifier
        key = self._key(action_class, identity)
        shard = self._shard_for(key)
        now = self._clock()

        with shard.lock:
            if now >= shard.next_sweep_at:
                self._sweep(shard, now)
                shard.next_sweep_at = now + self._sweep_interval
            bucket = shard.buckets.get(key)
            if bucket is None or now >= bucket.reset_at:
                bucket = _Bucket(count=1, reset_at=now + policy.window_seconds)
                shard.buckets[key] = bucket
                return RateLimitResult(
                    allowed=True,
                    remaining=policy.max_requests - 1,
                    reset_at=bucket.reset_at,
                )

            bucket.count += 1
            if bucket.count > policy.max_requests:
                retry_after = max(1, math.ceil(bucket.reset_at - now))
                logger.debug(
                    "Rate limit exceeded for %s (%s); retry in %ss",
                    identity,
                    action_class,
                    retry_after,
                )
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=bucket.reset_at,
                    retry_after=retry_after,
                )
            return RateLimitResult(
                allowed=True,
                remaining=policy.max_requests - bucket.count,
                reset_at=bucket.reset_at,
            )

    def enforce(
        self,
        actor_id: str | None,
        fallback_identifier: str,
        action_class: str = "read",
    ) -> RateLimitResult:
        """Like :meth:`check` but raise ``RateLimitExceeded`` on denial."""
        result = self.check(actor_id, fallback_identifier, action_class)
        if not result.allowed:
            raise RateLimitExceeded(
                action_class,
                retry_after=result.retry_after or 1,
                reset_at=result.reset_at,
            )
        return result

    def reset(self, identity: str | None = None, action_class: str | None = None) -> None:
        """Drop buckets matching the filters; with no filters, drop everything."""
        for shard in self._shards:
            with shard.lock:
                if identity is None and action_class is None:
                    shard.buckets.clear()
                    continue
                for key in list(shard.buckets):
                    bucket_class, _, bucket_identity = key.partition(":")
                    if identity is not None and bucket_identity != identity:
                        continue
                    if action_class is not None and bucket_class != action_class:
                        continue
                    del shard.buckets[key]

    @staticmethod
    def _sweep(shard: _Shard, now: float) -> None:
        expired = [key for key, bucket in shard.buckets.items() if now >= bucket.reset_at]
        for key in expired:
            del shard.buckets[key]


def client_ip(headers: Mapping[str, str], fallback: str | None = None) -> str:
    """Return the caller's address from proxy headers.

    The first ``X-Forwarded-For`` hop wins, then ``X-Real-IP``, then
    ``fallback``; ``"unknown"`` when nothing is available.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback or "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build the response headers describing ``result``."""
    headers = {
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at)),
    }
    if not result.allowed and result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return headers


_RATE_LIMITER = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter."""
    return _RATE_LIMITER
