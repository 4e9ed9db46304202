"""
Rate Limiter

In-memory fixed-window request counter keyed by string.
Single process, best effort: state is lost on restart and is not shared
between instances.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("studio.security.rate_limiter")


@dataclass(frozen=True)
class RateLimitRule:
    """Maximum requests allowed per window"""
    max_requests: int
    window_seconds: float


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check"""
    allowed: bool
    remaining: int
    reset_in: float  # seconds until the window resets

    @property
    def retry_after(self) -> int:
        """Whole seconds a client should wait, rounded up"""
        return max(1, math.ceil(self.reset_in))


RATE_LIMITS: Dict[str, RateLimitRule] = {
    "default": RateLimitRule(60, 60),
    "chat": RateLimitRule(20, 60),
    "upload": RateLimitRule(10, 60),
    "analysis": RateLimitRule(10, 60),
    "auth": RateLimitRule(5, 15 * 60),
    "workout": RateLimitRule(30, 60),
    "api": RateLimitRule(100, 60),
    "avatar": RateLimitRule(3, 60 * 60),
}


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window rate limiter.

    The first request for a key opens a window of rule.window_seconds.
    Requests are counted until rule.max_requests is reached; further requests
    are denied (and not counted) until the window expires.
    """

    CLEANUP_EVERY = 1000

    def __init__(
        self,
        rules: Optional[Dict[str, RateLimitRule]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rules = dict(rules or RATE_LIMITS)
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._checks = 0

    def rule_for(self, kind: str) -> RateLimitRule:
        return self.rules.get(kind) or self.rules["default"]

    def check(self, key: str, kind: str = "default") -> RateLimitResult:
        """Count a request against key and report whether it is allowed"""
        rule = self.rule_for(kind)
        now = self._clock()

        self._checks += 1
        if self._checks % self.CLEANUP_EVERY == 0:
            self.cleanup()

        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + rule.window_seconds)
            return RateLimitResult(True, rule.max_requests - 1, rule.window_seconds)

        reset_in = window.reset_at - now
        if window.count >= rule.max_requests:
            logger.debug(f"Rate limit hit for key={key} kind={kind}")
            return RateLimitResult(False, 0, reset_in)

        window.count += 1
        return RateLimitResult(True, rule.max_requests - window.count, reset_in)

    def cleanup(self) -> int:
        """Drop expired windows, returns number removed"""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Rate limiter cleaned {len(expired)} expired windows")
        return len(expired)

    def reset(self, key: Optional[str] = None):
        """Clear a single key or every key"""
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)
