"""State storage for circuit breakers.

Storage is intentionally decoupled from breaker logic. Custom backends (for
example a key-value store with TTLs) can implement the interface so several
processes share breaker state without changing the state machine.

Important: storage is not synchronized. The owning ``CircuitBreaker`` holds its
own lock around every read-modify-write sequence.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from depguard.circuit_breaker.state import BreakerRecord
from depguard.circuit_breaker.window import FailureWindow, SlidingFailureWindow


class AbstractBreakerStorage(ABC):
    """Abstract breaker storage interface."""

    @abstractmethod
    def load(self, name: str) -> BreakerRecord:
        """Return the stored record for ``name``, or a fresh ``CLOSED`` one."""

    @abstractmethod
    def save(self, name: str, record: BreakerRecord) -> None:
        """Replace the stored record for ``name``."""

    @abstractmethod
    def add_failure(self, name: str, at: float) -> None:
        """Append one failure timestamp for ``name``."""

    @abstractmethod
    def prune_failures(self, name: str, now: float, window: float) -> int:
        """Drop failures outside ``window`` and return the remaining count."""

    @abstractmethod
    def count_failures(self, name: str, now: float, window: float) -> int:
        """Count failures inside ``window`` without modifying storage."""

    @abstractmethod
    def clear_failures(self, name: str) -> None:
        """Forget every failure recorded for ``name``."""

    @abstractmethod
    def reset(self, name: str) -> BreakerRecord:
        """Reset ``name`` to a healthy ``CLOSED`` record and clear failures."""


class InMemoryBreakerStorage(AbstractBreakerStorage):
    """Process-local storage keeping one failure window per breaker name."""

    def __init__(
        self,
        window_factory: Callable[[], FailureWindow] = SlidingFailureWindow,
    ) -> None:
        """Initialize empty record and window registries.

        Args:
            window_factory: Builds the failure window used for each new name.
        """
        self._records: dict[str, BreakerRecord] = {}
        self._windows: dict[str, FailureWindow] = {}
        self._window_factory = window_factory

    def _window(self, name: str) -> FailureWindow:
        window = self._windows.get(name)
        if window is None:
            window = self._window_factory()
            self._windows[name] = window
        return window

    def load(self, name: str) -> BreakerRecord:
        return self._records.get(name, BreakerRecord())

    def save(self, name: str, record: BreakerRecord) -> None:
        self._records[name] = record

    def add_failure(self, name: str, at: float) -> None:
        self._window(name).add(at)

    def prune_failures(self, name: str, now: float, window: float) -> int:
        return self._window(name).prune(now, window)

    def count_failures(self, name: str, now: float, window: float) -> int:
        existing = self._windows.get(name)
        if existing is None:
            return 0
        return existing.count(now, window)

    def clear_failures(self, name: str) -> None:
        existing = self._windows.get(name)
        if existing is not None:
            existing.clear()

    def reset(self, name: str) -> BreakerRecord:
        self.clear_failures(name)
        record = BreakerRecord()
        self._records[name] = record
        return record
