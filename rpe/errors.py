"""Exception hierarchy shared by the projection components."""

from __future__ import annotations

from typing import Any


class RPEError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(RPEError, ValueError):
    """Raised when a scenario is malformed. Nothing is simulated."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class SchemaError(ValidationError):
    """Raised when raw JSON cannot be parsed into scenario objects."""


class ConfigurationError(RPEError):
    """Raised when bracket, benefit, schedule or strategy data is unusable."""


class UnknownVariantError(ConfigurationError):
    """Raised for an unrecognized variant identifier.

    ``baseline`` is the unmodified scenario the caller should fall back to.
    """

    def __init__(self, name: str, baseline: Any = None) -> None:
        super().__init__(f"unknown scenario variant '{name}'")
        self.name = name
        self.baseline = baseline


class ConvergenceError(RPEError):
    """Raised when the spending search runs out of iterations."""

    def __init__(self, message: str, last_trial: Any = None) -> None:
        super().__init__(message)
        self.last_trial = last_trial
