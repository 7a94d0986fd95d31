from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Protocol, cast

import pytest
import structlog

from depguard.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    LoggingBreakerListener,
)
from depguard.logging import (
    configure_structlog,
    get_log_level_value,
    log_info,
    log_warning,
)
from tests.depguard.support.fakes import FakeLogger


def _configured_renderer() -> object:
    root_handler = logging.getLogger().handlers[0]
    formatter = root_handler.formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class _RecordWithCircuitFields(Protocol):
    circuit: str
    failure_count: int


def _capturing_logger(name: str) -> tuple[logging.Logger, _CaptureHandler]:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _CaptureHandler()
    logger.addHandler(handler)
    return logger, handler


def test_get_log_level_value_maps_known_levels() -> None:
    assert get_log_level_value("debug") == logging.DEBUG
    assert get_log_level_value("INFO") == logging.INFO
    assert get_log_level_value(" warning ") == logging.WARNING
    assert get_log_level_value("ERROR") == logging.ERROR
    assert get_log_level_value("critical") == logging.CRITICAL


def test_get_log_level_value_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="log_level must be one of"):
        get_log_level_value("TRACE")


def test_configure_structlog_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    first_logger = configure_structlog(log_level="INFO")
    second_logger = configure_structlog(log_level="DEBUG")

    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger().level == logging.DEBUG
    assert first_logger is not None
    assert second_logger is not None


def test_configure_structlog_uses_console_renderer_for_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: True, raising=False)

    configure_structlog(log_level="INFO")

    assert isinstance(_configured_renderer(), structlog.dev.ConsoleRenderer)


def test_configure_structlog_uses_json_renderer_for_non_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    configure_structlog(log_level="INFO")

    assert isinstance(_configured_renderer(), structlog.processors.JSONRenderer)


def test_configure_structlog_json_flag_overrides_tty_detection(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: True, raising=False)

    configure_structlog(log_level="INFO", json_logs=True)

    assert isinstance(_configured_renderer(), structlog.processors.JSONRenderer)


@pytest.mark.parametrize(
    ("log_fn", "level"),
    [
        (log_info, "info"),
        (log_warning, "warning"),
    ],
)
def test_structured_log_helpers_forward_keyword_fields(
    log_fn: Callable[..., None],
    level: str,
) -> None:
    logger = FakeLogger()

    log_fn(logger, "circuit_breaker.opened", circuit="database", failure_count=5)

    assert logger.calls == [
        (level, "circuit_breaker.opened", {"circuit": "database", "failure_count": 5})
    ]


def test_structured_log_helpers_support_stdlib_logger_extra() -> None:
    logger, handler = _capturing_logger("tests.depguard.logging.helpers")

    log_info(logger, "circuit_breaker.closed", circuit="database", failure_count=0)

    assert len(handler.records) == 1
    record = handler.records[0]
    typed_record = cast(_RecordWithCircuitFields, record)
    assert record.getMessage() == "circuit_breaker.closed"
    assert typed_record.circuit == "database"
    assert typed_record.failure_count == 0


def test_logging_listener_accepts_stdlib_logger() -> None:
    logger, handler = _capturing_logger("tests.depguard.logging.listener")
    breaker = CircuitBreaker(
        "identity_provider",
        config=CircuitBreakerConfig(failure_threshold=1),
        listeners=[LoggingBreakerListener(logger)],
    )

    breaker.record_failure()

    assert [record.getMessage() for record in handler.records] == [
        "circuit_breaker.opened",
        "circuit_breaker.failure",
    ]
    assert all(record.levelno == logging.WARNING for record in handler.records)
    assert cast(_RecordWithCircuitFields, handler.records[0]).circuit == (
        "identity_provider"
    )
