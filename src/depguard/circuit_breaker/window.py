"""Failure window strategies.

A window holds the failures recorded for one breaker and answers how many of
them fall inside the trailing ``window`` seconds. All readings come from the
breaker's monotonic clock and arrive in non-decreasing order.
"""

import math
from abc import ABC, abstractmethod
from collections import deque


class FailureWindow(ABC):
    """Abstract failure window."""

    @abstractmethod
    def add(self, at: float) -> None:
        """Record one failure observed at monotonic time ``at``."""

    @abstractmethod
    def prune(self, now: float, window: float) -> int:
        """Drop expired failures and return how many remain."""

    @abstractmethod
    def count(self, now: float, window: float) -> int:
        """Return how many failures are inside the window without pruning."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every recorded failure."""


class SlidingFailureWindow(FailureWindow):
    """Exact sliding window backed by an ordered list of timestamps.

    A failure exactly ``window`` seconds old is outside the window.
    """

    def __init__(self) -> None:
        self._timestamps: deque[float] = deque()

    def add(self, at: float) -> None:
        self._timestamps.append(at)

    def prune(self, now: float, window: float) -> int:
        cutoff = now - window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
        return len(self._timestamps)

    def count(self, now: float, window: float) -> int:
        cutoff = now - window
        return sum(1 for at in self._timestamps if at > cutoff)

    def clear(self) -> None:
        self._timestamps.clear()


class BucketedFailureWindow(FailureWindow):
    """Coarse window that keeps one counter per fixed-width time bucket.

    Memory is bounded by ``window / bucket_seconds`` buckets regardless of the
    failure rate. A bucket expires once its end is at or before
    ``now - window``, so failures may be remembered for up to one extra bucket
    width.
    """

    def __init__(self, bucket_seconds: float = 1.0) -> None:
        if bucket_seconds <= 0:
            raise ValueError("bucket_seconds must be > 0")
        self.bucket_seconds = bucket_seconds
        self._buckets: deque[list[int]] = deque()

    def _bucket_end(self, index: int) -> float:
        return (index + 1) * self.bucket_seconds

    def add(self, at: float) -> None:
        index = math.floor(at / self.bucket_seconds)
        if self._buckets and self._buckets[-1][0] == index:
            self._buckets[-1][1] += 1
            return
        self._buckets.append([index, 1])

    def prune(self, now: float, window: float) -> int:
        cutoff = now - window
        while self._buckets and self._bucket_end(self._buckets[0][0]) <= cutoff:
            self._buckets.popleft()
        return sum(hits for _, hits in self._buckets)

    def count(self, now: float, window: float) -> int:
        cutoff = now - window
        return sum(
            hits for index, hits in self._buckets if self._bucket_end(index) > cutoff
        )

    def clear(self) -> None:
        self._buckets.clear()
