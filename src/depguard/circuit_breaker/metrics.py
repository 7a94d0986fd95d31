"""Observability hooks for circuit breakers."""

from typing import Protocol

from depguard.circuit_breaker.state import BreakerEvent
from depguard.logging import AnyLogger, log_info, log_warning

EVENT_OPENED = "circuit_breaker.opened"
EVENT_HALF_OPEN = "circuit_breaker.half_open"
EVENT_CLOSED = "circuit_breaker.closed"
EVENT_FAILURE = "circuit_breaker.failure"
EVENT_REJECTED = "circuit_breaker.rejected"
EVENT_RESET = "circuit_breaker.reset"

_WARNING_EVENTS = frozenset({EVENT_OPENED, EVENT_FAILURE, EVENT_REJECTED})


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Notes:
        Listeners run synchronously after the breaker has released its lock.
        Exceptions raised here are logged by the breaker and never reach the
        caller of the protected operation.
    """

    def on_event(self, event: BreakerEvent) -> None:
        """Handle one transition, failure or rejection record."""


class LoggingBreakerListener:
    """Forward breaker events to a structured or stdlib logger."""

    def __init__(self, logger: AnyLogger) -> None:
        self._logger = logger

    def on_event(self, event: BreakerEvent) -> None:
        fields: dict[str, object] = {
            "circuit": event.circuit_name,
            "state": str(event.state),
            "failure_count": event.failure_count,
            "threshold": event.threshold,
        }
        if event.error is not None:
            fields["error"] = event.error
        if event.event in _WARNING_EVENTS:
            log_warning(self._logger, event.event, **fields)
            return
        log_info(self._logger, event.event, **fields)
