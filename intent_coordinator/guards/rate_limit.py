"""Fixed-window rate limiter.

A window opens on the first hit for a key and lasts `window_ms`. Up to `limit` hits are allowed per
window; the first hit at or after `window_start + window_ms` opens a new window. Because windows are
fixed, a caller can burst up to `2 * limit` requests around a window boundary.

Elapsed windows are swept at most once per `window_ms`, so the table only holds keys seen recently.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RateWindow:
    window_start_ms: int
    count: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single hit."""

    allowed: bool
    remaining: int


class FixedWindowRateLimiter:
    """Per-key fixed-window counter (single-threaded use only)."""

    def __init__(self, *, limit: int, window_ms: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self._limit = limit
        self._window_ms = window_ms
        self._windows: dict[str, RateWindow] = {}
        self._last_sweep_ms: int | None = None

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __len__(self) -> int:
        return len(self._windows)

    def _elapsed(self, window: RateWindow, now_ms: int) -> bool:
        return now_ms - window.window_start_ms >= self._window_ms

    def sweep(self, now_ms: int) -> int:
        """Drop every elapsed window; return how many were removed."""

        stale = [key for key, window in self._windows.items() if self._elapsed(window, now_ms)]
        for key in stale:
            del self._windows[key]
        self._last_sweep_ms = now_ms
        return len(stale)

    def hit(self, key: str, now_ms: int) -> RateLimitDecision:
        if self._last_sweep_ms is None or now_ms - self._last_sweep_ms >= self._window_ms:
            self.sweep(now_ms)

        window = self._windows.get(key)
        if window is None or self._elapsed(window, now_ms):
            self._windows[key] = RateWindow(window_start_ms=now_ms, count=1)
            return RateLimitDecision(allowed=True, remaining=max(0, self._limit - 1))

        if window.count >= self._limit:
            return RateLimitDecision(allowed=False, remaining=0)

        window.count += 1
        return RateLimitDecision(allowed=True, remaining=max(0, self._limit - window.count))
