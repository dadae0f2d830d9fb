"""Exceptions raised by the coverage planner."""

from typing import Any, Optional


class PlannerError(Exception):
    """Base class for all planner errors."""


class MalformedRecord(PlannerError, ValueError):
    """A coverage record is invalid; the whole load is rejected."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class UnitNotFound(PlannerError, LookupError):
    """No unit with the requested path exists in the model."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Unit not found: {path}")


class InvalidThreshold(PlannerError, ValueError):
    """A policy ratio is not a number in [0.0, 1.0]."""

    def __init__(self, category: str, value: Any):
        self.category = category
        self.value = value
        super().__init__(
            f"Invalid threshold for {category!r}: {value!r} (expected a ratio in [0.0, 1.0])"
        )


class PolicyError(PlannerError):
    """Planning was attempted against a policy that failed to construct."""
