"""Circuit breaker registry shared by every call site of a process.

The registry is an explicitly constructed object owned by application
start-up (see ``depguard.bootstrap``) and passed to the components that need
it. It creates breakers lazily by name and never evicts them, so call sites
protecting the same dependency always share one breaker.
"""

import logging
import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import replace
from types import MappingProxyType

from depguard.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from depguard.circuit_breaker.clock import Clock
from depguard.circuit_breaker.exceptions import CircuitConfigError
from depguard.circuit_breaker.metrics import BreakerListener
from depguard.circuit_breaker.state import BreakerSnapshot
from depguard.circuit_breaker.storage import (
    AbstractBreakerStorage,
    InMemoryBreakerStorage,
)

_logger = logging.getLogger(__name__)

FINANCIAL_AGGREGATOR = "financial_aggregator"
DATABASE = "database"
IDENTITY_PROVIDER = "identity_provider"

PROVISIONED_CONFIGS: Mapping[str, CircuitBreakerConfig] = MappingProxyType(
    {
        FINANCIAL_AGGREGATOR: CircuitBreakerConfig(
            failure_threshold=3,
            reset_timeout=60.0,
            success_threshold=2,
            failure_window=120.0,
        ),
        DATABASE: CircuitBreakerConfig(
            failure_threshold=5,
            reset_timeout=10.0,
            success_threshold=3,
            failure_window=30.0,
        ),
        IDENTITY_PROVIDER: CircuitBreakerConfig(
            failure_threshold=5,
            reset_timeout=30.0,
            success_threshold=2,
            failure_window=60.0,
        ),
    }
)


class CircuitRegistry:
    """Directory of named circuit breakers.

    Usage:
        registry = CircuitRegistry(listeners=[LoggingBreakerListener(logger)])
        breaker = registry.get("ledger-api", failure_threshold=3)
        result = guarded(breaker, fetch_ledger)

    Attributes:
        defaults: Configuration used for names created without one.
    """

    def __init__(
        self,
        *,
        defaults: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        clock: Clock | None = None,
        storage_factory: Callable[[], AbstractBreakerStorage] = InMemoryBreakerStorage,
    ) -> None:
        """Initialize an empty registry.

        Args:
            defaults: Base configuration for new breakers.
            listeners: Listeners attached to every breaker created here.
            clock: Time source shared by every breaker created here.
            storage_factory: Builds the storage backend for each new breaker.
        """
        self.defaults = CircuitBreakerConfig() if defaults is None else defaults
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._clock = clock
        self._storage_factory = storage_factory
        self._circuits: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        return name in self._circuits

    def __len__(self) -> int:
        return len(self._circuits)

    def __iter__(self) -> Iterator[CircuitBreaker]:
        with self._lock:
            circuits = list(self._circuits.values())
        return iter(circuits)

    def names(self) -> list[str]:
        """Return registered breaker names in creation order."""
        with self._lock:
            return list(self._circuits)

    def get(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        **overrides: object,
    ) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use.

        Args:
            name: Breaker name.
            config: Full configuration for a new breaker. Defaults to the
                registry defaults.
            **overrides: ``CircuitBreakerConfig`` fields applied on top of
                ``config`` for a new breaker.

        Returns:
            The single breaker registered under ``name``. Configuration passed
            for an already registered name is ignored.
        """
        circuit = self._circuits.get(name)
        if circuit is not None:
            return circuit

        with self._lock:
            circuit = self._circuits.get(name)
            if circuit is None:
                _logger.debug("Creating circuit breaker", extra={"circuit": name})
                base = self.defaults if config is None else config
                try:
                    resolved = replace(base, **overrides) if overrides else base
                except TypeError as error:
                    raise CircuitConfigError(
                        f"Invalid override for circuit {name!r}: {error}"
                    ) from error
                circuit = CircuitBreaker(
                    name,
                    config=resolved,
                    storage=self._storage_factory(),
                    listeners=self._listeners,
                    clock=self._clock,
                )
                self._circuits[name] = circuit
            return circuit

    def register(self, name: str, config: CircuitBreakerConfig) -> CircuitBreaker:
        """Register ``name`` with an explicit configuration."""
        return self.get(name, config)

    def all_stats(self) -> dict[str, BreakerSnapshot]:
        """Return a snapshot for every registered breaker."""
        return {circuit.name: circuit.snapshot() for circuit in self}

    def reset_all(self) -> None:
        """Reset every registered breaker in place."""
        for circuit in self:
            circuit.reset()


class ProvisionedCircuits:
    """Named accessors for the dependencies this application protects."""

    def __init__(self, registry: CircuitRegistry) -> None:
        self._registry = registry

    def _get(self, name: str) -> CircuitBreaker:
        return self._registry.get(
            name,
            PROVISIONED_CONFIGS[name],
            count_cancellation_as_failure=(
                self._registry.defaults.count_cancellation_as_failure
            ),
        )

    def financial_aggregator(self) -> CircuitBreaker:
        return self._get(FINANCIAL_AGGREGATOR)

    def database(self) -> CircuitBreaker:
        return self._get(DATABASE)

    def identity_provider(self) -> CircuitBreaker:
        return self._get(IDENTITY_PROVIDER)

    def provision_all(self) -> list[CircuitBreaker]:
        """Create every provisioned breaker up front."""
        return [self._get(name) for name in PROVISIONED_CONFIGS]
