"""Time sources used by circuit breakers."""

import time
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Clock protocol pairing a monotonic timer with a wall clock.

    Notes:
        Timers and failure windows only read ``monotonic``. ``now`` feeds the
        observability timestamps on snapshots.
    """

    def monotonic(self) -> float:
        """Return a monotonic reading in seconds."""

    def now(self) -> datetime:
        """Return the current timezone-aware wall-clock time."""


class SystemClock:
    """Clock backed by ``time.monotonic`` and ``datetime.now(UTC)``."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)
