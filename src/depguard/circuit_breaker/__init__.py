"""Thread-safe circuit breaker for sync and async dependency calls.

This package implements the circuit breaker pattern from *Release It!*.

Key behavior notes:
  - Failures are counted over a trailing time window. A burst older than the
    window is forgotten, so unrelated incidents do not add up.
  - ``OPEN -> HALF_OPEN`` is lazy: it happens on the first permission check
    after the reset timeout, never on a timer.
  - ``HALF_OPEN`` permits calls; ``success_threshold`` consecutive successes
    close the breaker and any failure reopens it.
  - Listener and bookkeeping errors are logged and never reach the caller of
    the protected operation.
"""

from depguard.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from depguard.circuit_breaker.clock import Clock, SystemClock
from depguard.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitConfigError,
    CircuitOpenError,
)
from depguard.circuit_breaker.guard import guarded, guarded_async, protected
from depguard.circuit_breaker.metrics import BreakerListener, LoggingBreakerListener
from depguard.circuit_breaker.registry import (
    PROVISIONED_CONFIGS,
    CircuitRegistry,
    ProvisionedCircuits,
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
from depguard.circuit_breaker.window import (
    BucketedFailureWindow,
    FailureWindow,
    SlidingFailureWindow,
)

__all__ = [
    "PROVISIONED_CONFIGS",
    "AbstractBreakerStorage",
    "BreakerEvent",
    "BreakerListener",
    "BreakerRecord",
    "BreakerSnapshot",
    "BucketedFailureWindow",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitConfigError",
    "CircuitOpenError",
    "CircuitRegistry",
    "CircuitState",
    "Clock",
    "FailureWindow",
    "InMemoryBreakerStorage",
    "LoggingBreakerListener",
    "ProvisionedCircuits",
    "SlidingFailureWindow",
    "SystemClock",
    "guarded",
    "guarded_async",
    "protected",
]
