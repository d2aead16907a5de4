"""Tests for the TTL cache and the fixed-window rate limiter."""

from __future__ import annotations

import pytest

from intent_coordinator.guards.rate_limit import FixedWindowRateLimiter
from intent_coordinator.guards.ttl_cache import TtlCache


def test_ttl_cache_expires_and_purges() -> None:
    cache: TtlCache[str, str] = TtlCache(ttl_ms=1000)
    cache.set("k", "v", now_ms=0)

    assert cache.get("k", now_ms=999) == "v"
    assert cache.get("k", now_ms=1000) is None
    assert len(cache) == 0


def test_ttl_cache_keys_are_independent() -> None:
    cache: TtlCache[str, int] = TtlCache(ttl_ms=10)
    cache.set("a", 1, now_ms=0)
    cache.set("b", 2, now_ms=5)

    assert cache.get("a", now_ms=12) is None
    assert cache.get("b", now_ms=12) == 2
    assert cache.get("missing", now_ms=0) is None


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TtlCache(ttl_ms=0)


def test_limit_plus_one_hit_is_rejected_within_window() -> None:
    limiter = FixedWindowRateLimiter(limit=3, window_ms=1000)

    decisions = [limiter.hit("devnet:1.2.3.4", now_ms=t) for t in (0, 10, 20, 999)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


def test_window_resets_after_it_elapses() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_ms=1000)

    assert limiter.hit("k", now_ms=0).allowed
    assert not limiter.hit("k", now_ms=500).allowed
    assert limiter.hit("k", now_ms=1001).allowed
    assert not limiter.hit("k", now_ms=1500).allowed


def test_window_boundary_is_inclusive() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_ms=1000)

    assert limiter.hit("k", now_ms=0).allowed
    assert limiter.hit("k", now_ms=1000).allowed


def test_boundary_burst_is_accepted() -> None:
    limiter = FixedWindowRateLimiter(limit=2, window_ms=1000)

    allowed = [limiter.hit("k", now_ms=t).allowed for t in (998, 999, 1998, 1999)]

    assert allowed == [True, True, True, True]


def test_keys_have_separate_windows() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_ms=1000)

    assert limiter.hit("devnet:a", now_ms=0).allowed
    assert limiter.hit("testnet:a", now_ms=0).allowed
    assert limiter.hit("devnet:b", now_ms=0).allowed
    assert not limiter.hit("devnet:a", now_ms=1).allowed


def test_ttl_cache_write_purges_expired_keys() -> None:
    cache: TtlCache[str, int] = TtlCache(ttl_ms=1000)
    for t in range(10_000):
        cache.set(f"key-{t}", t, now_ms=t)

    cache.set("fresh", 1, now_ms=10_000_000)

    assert len(cache) == 1
    assert cache.get("fresh", now_ms=10_000_000) == 1


def test_ttl_cache_purge_keeps_live_entries() -> None:
    cache: TtlCache[str, int] = TtlCache(ttl_ms=100)
    cache.set("a", 1, now_ms=0)
    cache.set("b", 2, now_ms=50)
    # Rewriting "a" moves it behind "b".
    cache.set("a", 3, now_ms=60)

    assert cache.purge_expired(now_ms=150) == 1
    assert cache.get("a", now_ms=150) == 3
    assert cache.get("b", now_ms=150) is None


def test_limiter_sweeps_elapsed_windows() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_ms=1000)
    for t in range(10_000):
        limiter.hit(f"devnet:{t}", now_ms=t)

    assert limiter.hit("devnet:late", now_ms=10_000_000).allowed
    assert len(limiter) == 1


def test_limiter_sweep_keeps_open_windows() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_ms=1000)
    limiter.hit("old", now_ms=0)
    limiter.hit("recent", now_ms=900)

    assert limiter.hit("other", now_ms=1000).allowed
    assert len(limiter) == 2
    assert not limiter.hit("recent", now_ms=1500).allowed
