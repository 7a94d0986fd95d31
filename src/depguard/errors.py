"""Shared error types for depguard."""


class TransientError(RuntimeError):
    """Generic retry-safe transient dependency failure."""
