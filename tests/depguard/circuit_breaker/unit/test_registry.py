from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from depguard.circuit_breaker import (
    PROVISIONED_CONFIGS,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitConfigError,
    CircuitRegistry,
    CircuitState,
    ProvisionedCircuits,
)
from tests.depguard.support.fakes import FakeClock, RecordingListener


def test_get_returns_same_instance_for_same_name() -> None:
    registry = CircuitRegistry()

    first = registry.get("x")
    second = registry.get("x")

    assert first is second
    assert registry.names() == ["x"]
    assert "x" in registry
    assert len(registry) == 1


def test_concurrent_first_lookups_create_one_breaker() -> None:
    registry = CircuitRegistry()
    workers = 32
    barrier = threading.Barrier(workers)

    def _lookup() -> CircuitBreaker:
        barrier.wait()
        return registry.get("shared")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = [future.result() for future in [pool.submit(_lookup) for _ in range(workers)]]

    assert len({id(circuit) for circuit in results}) == 1
    assert len(registry) == 1


def test_independent_names_do_not_share_state() -> None:
    registry = CircuitRegistry(defaults=CircuitBreakerConfig(failure_threshold=1))

    registry.get("a").record_failure()

    assert registry.get("a").state == CircuitState.OPEN
    assert registry.get("b").state == CircuitState.CLOSED


def test_overrides_apply_to_new_breaker_only() -> None:
    registry = CircuitRegistry(defaults=CircuitBreakerConfig(failure_threshold=7))

    created = registry.get("svc", success_threshold=4)
    again = registry.get("svc", failure_threshold=1)

    assert created is again
    assert created.config.failure_threshold == 7
    assert created.config.success_threshold == 4


def test_register_uses_explicit_config() -> None:
    registry = CircuitRegistry()
    config = CircuitBreakerConfig(failure_threshold=2, reset_timeout=3.0)

    circuit = registry.register("db", config)

    assert circuit.config == config
    assert registry.get("db") is circuit


def test_invalid_override_fails_fast_without_registering() -> None:
    registry = CircuitRegistry()

    with pytest.raises(ValueError):
        registry.get("svc", failure_threshold=0)

    assert "svc" not in registry


def test_unknown_override_key_is_a_config_error() -> None:
    registry = CircuitRegistry()

    with pytest.raises(CircuitConfigError, match="failure_treshold"):
        registry.get("svc", failure_treshold=3)

    assert "svc" not in registry


def test_registry_shares_listeners_and_clock(
    fake_clock: FakeClock,
    recording_listener: RecordingListener,
) -> None:
    registry = CircuitRegistry(
        defaults=CircuitBreakerConfig(failure_threshold=1, reset_timeout=2.0),
        listeners=[recording_listener],
        clock=fake_clock,
    )
    circuit = registry.get("svc")

    circuit.record_failure()
    fake_clock.advance(2.0)

    assert circuit.is_permitted() is True
    assert recording_listener.names()[-1] == "circuit_breaker.half_open"


def test_all_stats_and_reset_all_preserve_identity(fake_clock: FakeClock) -> None:
    registry = CircuitRegistry(
        defaults=CircuitBreakerConfig(failure_threshold=1),
        clock=fake_clock,
    )
    first = registry.get("a")
    registry.get("b")
    first.record_failure()

    stats = registry.all_stats()
    assert set(stats) == {"a", "b"}
    assert stats["a"].state == CircuitState.OPEN
    assert stats["a"].failure_count == 1
    assert stats["b"].state == CircuitState.CLOSED

    registry.reset_all()

    assert registry.get("a") is first
    assert first.state == CircuitState.CLOSED
    assert registry.all_stats()["a"].failure_count == 0


def test_provisioned_circuits_use_service_configs() -> None:
    registry = CircuitRegistry()
    services = ProvisionedCircuits(registry)

    aggregator = services.financial_aggregator()
    database = services.database()
    identity = services.identity_provider()

    assert aggregator.config.failure_threshold == 3
    assert aggregator.config.reset_timeout == 60.0
    assert aggregator.config.failure_window == 120.0
    assert database.config.reset_timeout == 10.0
    assert database.config.success_threshold == 3
    assert identity.config == PROVISIONED_CONFIGS["identity_provider"]
    assert services.database() is database
    assert registry.get("financial_aggregator") is aggregator


def test_provision_all_creates_every_service_breaker() -> None:
    registry = CircuitRegistry(
        defaults=CircuitBreakerConfig(count_cancellation_as_failure=False)
    )

    circuits = ProvisionedCircuits(registry).provision_all()

    assert sorted(registry.names()) == sorted(PROVISIONED_CONFIGS)
    assert all(not circuit.config.count_cancellation_as_failure for circuit in circuits)
