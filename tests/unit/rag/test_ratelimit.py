"""Tests for the fixed-window rate limiter."""

from __future__ import annotations

import pytest

from handbook_qa.rag.ratelimit import InMemoryBucketStore, RateLimiter


@pytest.fixture
def limiter(fake_clock):
    return RateLimiter(InMemoryBucketStore(), max_calls=20, window_s=60.0, clock=fake_clock)


def test_allows_up_to_ceiling(limiter):
    assert not any(limiter.hit("1.2.3.4") for _ in range(20))


def test_request_over_ceiling_is_limited(limiter):
    for _ in range(20):
        limiter.hit("1.2.3.4")
    assert limiter.hit("1.2.3.4")
    assert limiter.hit("1.2.3.4")


def test_clients_are_independent(limiter):
    for _ in range(21):
        limiter.hit("1.2.3.4")
    assert not limiter.hit("5.6.7.8")


def test_window_resets_after_it_elapses(limiter, fake_clock):
    for _ in range(25):
        limiter.hit("1.2.3.4")
    fake_clock.advance(60.5)
    assert not limiter.hit("1.2.3.4")
    assert not any(limiter.hit("1.2.3.4") for _ in range(19))
    assert limiter.hit("1.2.3.4")


def test_window_boundary_is_inclusive(limiter, fake_clock):
    for _ in range(20):
        limiter.hit("1.2.3.4")
    fake_clock.advance(60.0)
    # exactly one window later the old bucket still applies
    assert limiter.hit("1.2.3.4")


def test_limited_requests_still_count(limiter, fake_clock):
    for _ in range(30):
        limiter.hit("ip")
    fake_clock.advance(30)
    assert limiter.hit("ip")


def test_store_keeps_one_bucket_per_client(fake_clock):
    store = InMemoryBucketStore()
    limiter = RateLimiter(store, max_calls=2, clock=fake_clock)
    limiter.hit("a")
    limiter.hit("b")
    limiter.hit("a")
    assert store.get("a").count == 2
    assert store.get("b").count == 1
    assert store.get("c") is None


def test_invalid_ceiling():
    with pytest.raises(ValueError):
        RateLimiter(InMemoryBucketStore(), max_calls=0)
