"""Guarded execution of dependency calls through a circuit breaker."""

import asyncio
import functools
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar, cast

from depguard.circuit_breaker.breaker import CircuitBreaker
from depguard.circuit_breaker.exceptions import CircuitOpenError

T = TypeVar("T")
P = ParamSpec("P")

_logger = logging.getLogger(__name__)


def _reject(circuit: CircuitBreaker) -> CircuitOpenError:
    return CircuitOpenError(circuit.name, retry_after=circuit.retry_after())


def _record_success(circuit: CircuitBreaker) -> None:
    try:
        circuit.record_success()
    except Exception:
        _logger.warning(
            "Circuit breaker success bookkeeping failed; continuing",
            exc_info=True,
            extra={"circuit": circuit.name},
        )


def _record_failure(circuit: CircuitBreaker, cause: BaseException) -> None:
    try:
        circuit.record_failure(cause)
    except Exception:
        _logger.warning(
            "Circuit breaker failure bookkeeping failed; continuing",
            exc_info=True,
            extra={"circuit": circuit.name, "error_type": type(cause).__name__},
        )


def guarded(circuit: CircuitBreaker, operation: Callable[[], T]) -> T:
    """Run a blocking operation under circuit breaker protection.

    Args:
        circuit: Breaker protecting the dependency.
        operation: Zero-argument callable performing the dependency call.

    Returns:
        The operation's result, unchanged.

    Raises:
        CircuitOpenError: When the circuit is open. ``operation`` is not called.
        Exception: Whatever ``operation`` raised, after it was recorded.
    """
    if not circuit.is_permitted():
        raise _reject(circuit)

    try:
        result = operation()
    except Exception as exc:
        _record_failure(circuit, exc)
        raise
    _record_success(circuit)
    return result


async def guarded_async(
    circuit: CircuitBreaker,
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Await an async operation under circuit breaker protection.

    Cancellation is recorded as a failure only when the breaker's
    ``count_cancellation_as_failure`` is set; it is always re-raised.

    Raises:
        CircuitOpenError: When the circuit is open. ``operation`` is not called.
        Exception: Whatever ``operation`` raised, after it was recorded.
    """
    if not circuit.is_permitted():
        raise _reject(circuit)

    try:
        result = await operation()
    except asyncio.CancelledError as exc:
        if circuit.config.count_cancellation_as_failure:
            _record_failure(circuit, exc)
        raise
    except Exception as exc:
        _record_failure(circuit, exc)
        raise
    _record_success(circuit)
    return result


def protected(
    circuit: CircuitBreaker,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorate a sync or async function so every call is guarded by ``circuit``."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        if inspect.iscoroutinefunction(func):
            async_func = cast(Callable[P, Awaitable[object]], func)

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> object:
                return await guarded_async(
                    circuit, functools.partial(async_func, *args, **kwargs)
                )

            return cast(Callable[P, T], async_wrapper)

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return guarded(circuit, functools.partial(func, *args, **kwargs))

        return wrapper

    return decorator
