from __future__ import annotations

from collections.abc import Callable
from functools import partial

from depguard.circuit_breaker import (
    AbstractBreakerStorage,
    BucketedFailureWindow,
    CircuitRegistry,
    Clock,
    InMemoryBreakerStorage,
    LoggingBreakerListener,
    ProvisionedCircuits,
)
from depguard.logging import AnyLogger, configure_structlog
from depguard.settings import BreakerSettings


def build_storage_factory(
    settings: BreakerSettings,
) -> Callable[[], AbstractBreakerStorage]:
    """Return the per-breaker storage factory selected by ``window_strategy``."""
    if settings.window_strategy == "bucketed":
        window_factory = partial(BucketedFailureWindow, settings.window_bucket_seconds)
        return partial(InMemoryBreakerStorage, window_factory=window_factory)
    return InMemoryBreakerStorage


def build_registry(
    settings: BreakerSettings | None = None,
    *,
    logger: AnyLogger | None = None,
    clock: Clock | None = None,
) -> CircuitRegistry:
    """Create the process registry at application start-up.

    Args:
        settings: Breaker defaults. Read from the environment when omitted.
        logger: Destination for breaker events. When omitted structlog is
            configured from ``settings`` and its logger is used.
        clock: Time source shared by every breaker.

    Returns:
        A registry with the provisioned service breakers already created.
    """
    resolved = BreakerSettings() if settings is None else settings
    if logger is None:
        logger = configure_structlog(
            log_level=resolved.log_level,
            json_logs=resolved.json_logs,
        )
    registry = CircuitRegistry(
        defaults=resolved.breaker_config(),
        listeners=[LoggingBreakerListener(logger)],
        clock=clock,
        storage_factory=build_storage_factory(resolved),
    )
    ProvisionedCircuits(registry).provision_all()
    return registry
