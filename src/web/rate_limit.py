"""Sliding-window admission control for generation requests.

Keyed by authenticated user id, else client address. In-memory; resets on deploy.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from cli.config_models import FeatureRateLimit, RateLimitsConfig
from offers.errors import RateLimitError

logger = structlog.get_logger()

DEFAULT_FEATURE = "offer_generation"
# expired identities are swept once per this many checks
SWEEP_EVERY = 256


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds
    limit: int
    current: int


class RateLimiter:
    """Per-feature sliding windows. ``clock`` is injectable for tests."""

    def __init__(self, config: Optional[RateLimitsConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config or RateLimitsConfig()
        self._clock = clock
        self._lock = threading.Lock()
        # (feature, scope, identity) -> request timestamps, oldest first
        self._log: dict[tuple[str, str, str], list[float]] = {}
        self._checks = 0

    def _limits(self, feature: str) -> Optional[FeatureRateLimit]:
        limits = self.config.for_feature(feature)
        if limits is None or not limits.enabled:
            return None
        return limits

    def check(self, identity: str, authenticated: bool, feature: str = DEFAULT_FEATURE) -> RateLimitResult:
        """Admit and record one request if the window has room."""
        now = self._clock()
        limits = self._limits(feature)
        if limits is None:
            return RateLimitResult(allowed=True, remaining=-1, reset_at=now, limit=0, current=0)

        rule = limits.authenticated if authenticated else limits.unauthenticated
        window = rule.window_seconds
        key = (feature, "auth" if authenticated else "anon", identity or "unknown")

        with self._lock:
            self._checks += 1
            if self._checks % SWEEP_EVERY == 0:
                self._sweep(now)
            cutoff = now - window
            log = [t for t in self._log.get(key, []) if t > cutoff]
            if len(log) >= rule.requests:
                if log:
                    self._log[key] = log
                else:
                    self._log.pop(key, None)
                reset_at = (log[0] if log else now) + window
                return RateLimitResult(
                    allowed=False, remaining=0, reset_at=reset_at, limit=rule.requests, current=len(log)
                )
            log.append(now)
            self._log[key] = log
            return RateLimitResult(
                allowed=True,
                remaining=rule.requests - len(log),
                reset_at=log[0] + window,
                limit=rule.requests,
                current=len(log),
            )

    def enforce(self, identity: str, authenticated: bool, feature: str = DEFAULT_FEATURE) -> RateLimitResult:
        """Like ``check`` but raises when the request is rejected.

        Raises:
            RateLimitError: window is full; carries reset time and retry-after seconds
        """
        result = self.check(identity, authenticated, feature)
        if result.allowed:
            return result
        retry_after = max(1, math.ceil(result.reset_at - self._clock()))
        logger.warning(
            "rate_limit.rejected",
            feature=feature,
            authenticated=authenticated,
            limit=result.limit,
            retry_after=retry_after,
        )
        raise RateLimitError(
            f"Rate limit exceeded. Try again in {retry_after} seconds.",
            reset_at=result.reset_at,
            retry_after=retry_after,
            limit=result.limit,
        )

    def sweep(self) -> int:
        """Forget identities with no request left in their window. Returns how many."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        expired = []
        for key, log in self._log.items():
            feature, scope, _ = key
            limits = self._limits(feature)
            if limits is None:
                expired.append(key)
                continue
            rule = limits.authenticated if scope == "auth" else limits.unauthenticated
            if not log or log[-1] <= now - rule.window_seconds:
                expired.append(key)
        for key in expired:
            del self._log[key]
        return len(expired)

    
    def tracked(self) -> int:
        """Number of identities currently holding window state."""
        return len(self._log)

    def reset(self) -> None:
        """Clear all rate limit state. Used in tests."""
        with self._lock:
            self._log.clear()
