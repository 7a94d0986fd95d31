"""Retry policy composed outside guarded execution.

Retries wrap ``guarded_async`` rather than living inside the breaker. A
``CircuitOpenError`` ends the retry loop at once, so an open circuit turns
"try and wait" into "fail fast".
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
    wait_exponential_jitter,
)
from tenacity.retry import retry_base

from depguard.circuit_breaker import CircuitBreaker, CircuitOpenError, guarded_async
from depguard.errors import TransientError

T = TypeVar("T")

RETRY_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry attempt count and backoff boundaries."""

    attempts: int | None
    min_seconds: float
    max_seconds: float

    def __post_init__(self) -> None:
        if self.attempts is not None and self.attempts < 1:
            raise ValueError("attempts must be >= 1 when provided")
        if self.min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")


def is_retryable(exc: BaseException) -> bool:
    """Classify whether a dependency failure is worth another attempt.

    Open circuits and client-side HTTP errors are final. Unrecognized
    exceptions are treated as retryable.
    """
    if isinstance(exc, CircuitOpenError):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRY_STATUSES
    if isinstance(
        exc, TransientError | httpx.TransportError | TimeoutError | ConnectionError
    ):
        return True
    return isinstance(exc, Exception)


retry_if_retryable = retry_if_exception(is_retryable)


def build_interruptible_sleep(
    stop_event: asyncio.Event,
) -> Callable[[float], Awaitable[None]]:
    """Build an async sleep that exits early when shutdown is requested."""

    async def _interruptible_sleep(delay: float) -> None:
        if stop_event.is_set():
            return

        bounded_delay = max(delay, 0.0)
        with suppress(TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=bounded_delay)

    return _interruptible_sleep


def build_exponential_jitter_retrying(
    *,
    policy: RetryBackoffPolicy,
    retry: retry_base = retry_if_retryable,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` with exponential jitter backoff."""
    options: dict[str, Any] = {
        "retry": retry,
        "wait": wait_exponential_jitter(
            multiplier=policy.min_seconds,
            max=policy.max_seconds,
        ),
        "stop": (
            stop_never
            if policy.attempts is None
            else stop_after_attempt(policy.attempts)
        ),
        "reraise": reraise,
    }
    if sleep is not None:
        options["sleep"] = sleep
    if before_sleep is not None:
        options["before_sleep"] = before_sleep
    return AsyncRetrying(**options)


async def retry_guarded_async(
    circuit: CircuitBreaker,
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
) -> T:
    """Retry ``operation`` with every attempt guarded by ``circuit``.

    Raises:
        CircuitOpenError: As soon as the circuit rejects an attempt.
        Exception: The last failure once retries are exhausted or a
            non-retryable failure occurs.
    """
    retrying = build_exponential_jitter_retrying(
        policy=policy,
        sleep=sleep,
        before_sleep=before_sleep,
    )
    async for attempt in retrying:
        with attempt:
            return await guarded_async(circuit, operation)
    raise AssertionError("unreachable: AsyncRetrying always returns or raises")
