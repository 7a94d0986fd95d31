"""Core circuit breaker implementation."""

import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace

from depguard.circuit_breaker.clock import Clock, SystemClock
from depguard.circuit_breaker.exceptions import CircuitConfigError
from depguard.circuit_breaker.metrics import (
    EVENT_CLOSED,
    EVENT_FAILURE,
    EVENT_HALF_OPEN,
    EVENT_OPENED,
    EVENT_REJECTED,
    EVENT_RESET,
    BreakerListener,
)
from depguard.circuit_breaker.state import (
    BreakerEvent,
    BreakerRecord,
    BreakerSnapshot,
    CircuitState,
)
from depguard.circuit_breaker.storage import (
    AbstractBreakerStorage,
    InMemoryBreakerStorage,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Failures inside the window that open the circuit.
        reset_timeout: Seconds to stay ``OPEN`` before a probe is allowed.
        success_threshold: Consecutive ``HALF_OPEN`` successes that close it.
        failure_window: Trailing seconds over which failures are counted.
        count_cancellation_as_failure: Record a cancelled async operation as a
            failure. When ``False`` cancellation leaves the breaker untouched.
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0
    success_threshold: int = 2
    failure_window: float = 60.0
    count_cancellation_as_failure: bool = True

    def __post_init__(self) -> None:
        for field_name in ("failure_threshold", "success_threshold"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise CircuitConfigError(f"{field_name} must be an integer >= 1")
        for field_name in ("reset_timeout", "failure_window"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise CircuitConfigError(f"{field_name} must be a number of seconds")
            if not math.isfinite(value):
                raise CircuitConfigError(f"{field_name} must be a finite number")
            if value <= 0:
                raise CircuitConfigError(f"{field_name} must be > 0")


class CircuitBreaker:
    """Failure-tracking guard for one logical dependency.

    The breaker only decides whether a call is permitted and keeps the
    statistics that drive that decision. Running the call is left to
    ``depguard.circuit_breaker.guard``.

    Every check-then-act sequence runs under a per-instance lock. The
    ``OPEN`` to ``HALF_OPEN`` transition is evaluated lazily by
    ``is_permitted`` instead of being scheduled.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        storage: AbstractBreakerStorage | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Build a circuit breaker with optional custom dependencies.

        Args:
            name: Unique breaker name used for storage, registry and events.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            storage: State storage backend. Defaults to in-memory storage.
            listeners: Optional listeners receiving breaker events.
            clock: Time source. Defaults to ``SystemClock()``.
        """
        if not name:
            raise CircuitConfigError("name must be non-empty")
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._storage = InMemoryBreakerStorage() if storage is None else storage
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._clock = SystemClock() if clock is None else clock
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self.state!s})"

    @property
    def state(self) -> CircuitState:
        """Stored state, without applying the lazy reset timer."""
        with self._lock:
            return self._storage.load(self.name).state

    def _event(
        self,
        event: str,
        record: BreakerRecord,
        failure_count: int,
        error: str | None = None,
    ) -> BreakerEvent:
        return BreakerEvent(
            event=event,
            circuit_name=self.name,
            state=record.state,
            failure_count=failure_count,
            threshold=self.config.failure_threshold,
            error=error,
        )

    def _emit(self, events: Sequence[BreakerEvent]) -> None:
        for event in events:
            for listener in self._listeners:
                try:
                    listener.on_event(event)
                except Exception:
                    _logger.warning(
                        "Circuit breaker listener failed; continuing",
                        exc_info=True,
                        extra={
                            "circuit": self.name,
                            "breaker_event": event.event,
                            "listener": listener.__class__.__name__,
                        },
                    )

    def _reset_timeout_elapsed(self, record: BreakerRecord, now: float) -> bool:
        if record.opened_at_monotonic is None:
            return True
        return now - record.opened_at_monotonic >= self.config.reset_timeout

    def _current_failures(self, now: float) -> int:
        return self._storage.count_failures(self.name, now, self.config.failure_window)

    def is_permitted(self) -> bool:
        """Return whether a call may proceed right now.

        Moves an ``OPEN`` breaker to ``HALF_OPEN`` first when the reset timeout
        has elapsed.
        """
        events: list[BreakerEvent] = []
        with self._lock:
            now = self._clock.monotonic()
            record = self._storage.load(self.name)
            failure_count = self._storage.prune_failures(
                self.name, now, self.config.failure_window
            )
            if record.state == CircuitState.OPEN and self._reset_timeout_elapsed(
                record, now
            ):
                record = replace(
                    record, state=CircuitState.HALF_OPEN, half_open_successes=0
                )
                self._storage.save(self.name, record)
                events.append(self._event(EVENT_HALF_OPEN, record, failure_count))
            permitted = record.state != CircuitState.OPEN
            if not permitted:
                events.append(self._event(EVENT_REJECTED, record, failure_count))
        self._emit(events)
        return permitted

    def record_success(self) -> None:
        """Record a successful call.

        Only ``HALF_OPEN`` counts successes; the breaker closes once
        ``success_threshold`` consecutive successes have been seen.
        """
        events: list[BreakerEvent] = []
        with self._lock:
            record = replace(
                self._storage.load(self.name), last_success_at=self._clock.now()
            )
            if record.state == CircuitState.HALF_OPEN:
                successes = record.half_open_successes + 1
                if successes >= self.config.success_threshold:
                    record = replace(
                        record,
                        state=CircuitState.CLOSED,
                        half_open_successes=0,
                        opened_at=None,
                        opened_at_monotonic=None,
                    )
                    self._storage.clear_failures(self.name)
                    events.append(self._event(EVENT_CLOSED, record, 0))
                else:
                    record = replace(record, half_open_successes=successes)
            self._storage.save(self.name, record)
        self._emit(events)

    def record_failure(self, cause: BaseException | None = None) -> None:
        """Record a failed call.

        Args:
            cause: Optional exception, used only to describe the failure in
                emitted events. It never changes the transition taken.
        """
        events: list[BreakerEvent] = []
        error = None if cause is None else f"{type(cause).__name__}: {cause}"
        with self._lock:
            now = self._clock.monotonic()
            wall_now = self._clock.now()
            record = replace(self._storage.load(self.name), last_failure_at=wall_now)
            self._storage.add_failure(self.name, now)
            failure_count = self._storage.prune_failures(
                self.name, now, self.config.failure_window
            )

            should_open = record.state == CircuitState.HALF_OPEN or (
                record.state == CircuitState.CLOSED
                and failure_count >= self.config.failure_threshold
            )
            if should_open:
                record = replace(
                    record,
                    state=CircuitState.OPEN,
                    half_open_successes=0,
                    opened_at=wall_now,
                    opened_at_monotonic=now,
                )
                events.append(self._event(EVENT_OPENED, record, failure_count))
            self._storage.save(self.name, record)
            events.append(self._event(EVENT_FAILURE, record, failure_count, error))
        self._emit(events)

    def reset(self) -> None:
        """Force the breaker back to a healthy ``CLOSED`` state."""
        with self._lock:
            record = self._storage.reset(self.name)
            event = self._event(EVENT_RESET, record, 0)
        self._emit([event])

    def retry_after(self) -> float:
        """Return seconds until an ``OPEN`` breaker allows a probe."""
        with self._lock:
            record = self._storage.load(self.name)
            if record.state != CircuitState.OPEN or record.opened_at_monotonic is None:
                return 0.0
            elapsed = self._clock.monotonic() - record.opened_at_monotonic
            return max(self.config.reset_timeout - elapsed, 0.0)

    def snapshot(self) -> BreakerSnapshot:
        """Return a read-only view of the breaker without changing it."""
        with self._lock:
            record = self._storage.load(self.name)
            failure_count = self._current_failures(self._clock.monotonic())
        return BreakerSnapshot(
            name=self.name,
            state=record.state,
            failure_count=failure_count,
            success_count=record.half_open_successes,
            last_failure_at=record.last_failure_at,
            last_success_at=record.last_success_at,
            opened_at=record.opened_at,
        )
