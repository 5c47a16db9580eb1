"""Simple fixed-window rate limiting."""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one rate-limit check."""

    allowed: bool
    retry_after_seconds: int = 0


@dataclass
class _Window:
    count: int
    resets_at: datetime


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemoryRateLimiter:
    """Per-client request counter with a fixed window.

    Single-process only; counters live in memory and reset on restart.
    Expired windows are swept at most once per window length.
    """

    max_requests: int = 100
    window_seconds: int = 60
    clock: Callable[[], datetime] = _utcnow
    _windows: dict[str, _Window] = field(default_factory=dict)
    _next_sweep_at: datetime | None = None

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    def check(self, client_key: str) -> RateLimitDecision:
        """Count a request and decide whether it may proceed."""
        now = self.clock()
        self._sweep(now)
        window = self._windows.get(client_key)
        if window is None or now >= window.resets_at:
            self._windows[client_key] = _Window(
                count=1, resets_at=now + timedelta(seconds=self.window_seconds)
            )
            return RateLimitDecision(allowed=True)
        if window.count >= self.max_requests:
            remaining = (window.resets_at - now).total_seconds()
            return RateLimitDecision(
                allowed=False, retry_after_seconds=max(1, math.ceil(remaining))
            )
        window.count += 1
        return RateLimitDecision(allowed=True)

    def _sweep(self, now: datetime) -> None:
        if self._next_sweep_at is not None and now < self._next_sweep_at:
            return
        for key in [k for k, w in self._windows.items() if now >= w.resets_at]:
            self._windows.pop(key, None)
        self._next_sweep_at = now + timedelta(seconds=self.window_seconds)
