from __future__ import annotations

from typing import Literal

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from depguard.circuit_breaker import CircuitBreakerConfig
from depguard.logging import get_log_level_value

WindowStrategy = Literal["sliding", "bucketed"]


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(
        env_prefix=prefix, case_sensitive=False, allow_inf_nan=False
    )


class BreakerSettings(BaseSettings):
    """Process-wide defaults for circuit breakers, read from ``DEPGUARD_*``."""

    model_config = prefixed_settings_config("DEPGUARD_")

    log_level: str = "INFO"
    json_logs: bool | None = None
    failure_threshold: int = 5
    reset_timeout_seconds: float = 30.0
    success_threshold: int = 2
    failure_window_seconds: float = 60.0
    count_cancellation_as_failure: bool = True
    window_strategy: WindowStrategy = "sliding"
    window_bucket_seconds: float = 1.0

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        get_log_level_value(value)
        return value.strip().upper()

    @field_validator("window_strategy", mode="before")
    @classmethod
    def _normalize_window_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("failure_threshold", "success_threshold")
    @classmethod
    def _validate_positive_count(cls, value: int, info: ValidationInfo) -> int:
        if value < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return value

    @field_validator(
        "reset_timeout_seconds",
        "failure_window_seconds",
        "window_bucket_seconds",
    )
    @classmethod
    def _validate_positive_duration(
        cls, value: float, info: ValidationInfo
    ) -> float:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    def breaker_config(self) -> CircuitBreakerConfig:
        """Build the default breaker configuration from these settings."""
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            reset_timeout=self.reset_timeout_seconds,
            success_threshold=self.success_threshold,
            failure_window=self.failure_window_seconds,
            count_cancellation_as_failure=self.count_cancellation_as_failure,
        )
