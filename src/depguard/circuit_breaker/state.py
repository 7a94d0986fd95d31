"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class BreakerRecord:
    """Stored state for one breaker, excluding its failure timestamps.

    Attributes:
        state: Current breaker state.
        half_open_successes: Consecutive successes since entering ``HALF_OPEN``.
        opened_at: Wall-clock time the breaker last entered ``OPEN``.
        opened_at_monotonic: Monotonic reading taken together with
            ``opened_at``; drives the ``OPEN`` to ``HALF_OPEN`` timer.
        last_failure_at: Wall-clock time of the last recorded failure.
        last_success_at: Wall-clock time of the last recorded success.
    """

    state: CircuitState = CircuitState.CLOSED
    half_open_successes: int = 0
    opened_at: datetime | None = None
    opened_at_monotonic: float | None = None
    last_failure_at: datetime | None = None
    last_success_at: datetime | None = None


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: Stored breaker state.
        failure_count: Failures still inside the failure window.
        success_count: Consecutive successes recorded while ``HALF_OPEN``.
        last_failure_at: Timestamp of the last recorded failure, if any.
        last_success_at: Timestamp of the last recorded success, if any.
        opened_at: Timestamp when the breaker last entered ``OPEN``, if any.
    """

    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_at: datetime | None
    last_success_at: datetime | None
    opened_at: datetime | None


@dataclass(frozen=True)
class BreakerEvent:
    """Structured record emitted for transitions, failures and rejections."""

    event: str
    circuit_name: str
    state: CircuitState
    failure_count: int
    threshold: int
    error: str | None = None
