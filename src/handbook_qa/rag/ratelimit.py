"""Fixed-window request limiter keyed by client identifier.

A bucket remembers when its window opened and how many requests it has seen.
The window resets lazily: the first request after it has elapsed starts a new
one. State is per process and is lost on restart.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass
class Bucket:
    opened_at: float
    count: int


class BucketStore(Protocol):
    def get(self, key: str) -> Bucket | None: ...

    def put(self, key: str, bucket: Bucket) -> None: ...


class InMemoryBucketStore:
    """Process-local bucket map. Grows with the number of distinct clients."""

    def __init__(self) -> None:
        self._buckets: dict[str, Bucket] = {}

    def get(self, key: str) -> Bucket | None:
        return self._buckets.get(key)

    def put(self, key: str, bucket: Bucket) -> None:
        self._buckets[key] = bucket


class RateLimiter:
    """Allow at most *max_calls* requests per *window_s* seconds per key.

    Args:
        store: Where buckets live.
        max_calls: Ceiling per window; request number ``max_calls + 1`` is limited.
        window_s: Window length in seconds.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        store: BucketStore,
        max_calls: int,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {max_calls}")
        self._store = store
        self.max_calls = max_calls
        self.window_s = window_s
        self._clock = clock

    def hit(self, key: str) -> bool:
        """Count one request for *key*. Returns True when the request is over the ceiling."""
        now = self._clock()
        bucket = self._store.get(key)
        if bucket is None or now - bucket.opened_at > self.window_s:
            self._store.put(key, Bucket(opened_at=now, count=1))
            return False
        bucket.count += 1
        self._store.put(key, bucket)
        return bucket.count > self.max_calls
