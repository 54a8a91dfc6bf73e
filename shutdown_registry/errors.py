"""Exception types raised by the cleanup registry."""

from __future__ import annotations

from typing import Any


class CleanupRegistryError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(CleanupRegistryError, ValueError):
    """Invalid timeout or delay configuration.

    ``field`` names the offending setting, ``value`` is what was supplied and
    ``limit`` is the bound it was compared against (usually the overall
    timeout).
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        limit: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
        self.limit = limit

    @classmethod
    def exceeds(cls, field: str, value: float, limit: float, *, limit_name: str = "overall_timeout") -> "ConfigError":
        return cls(
            f"{field} ({value}) must not exceed {limit_name} ({limit})",
            field=field,
            value=value,
            limit=limit,
        )


class LifecycleError(CleanupRegistryError, RuntimeError):
    """An operation was called outside the lifecycle state it requires."""


class AlreadyTriggeredError(LifecycleError):
    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"cannot {operation}: registry has already been triggered (state: {state}); call clear() first"
        )
        self.operation = operation
        self.state = state


class AttemptTimeoutError(CleanupRegistryError, TimeoutError):
    """A single attempt did not settle within its per-attempt timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"action timed out after {timeout} seconds")
        self.timeout = timeout


class UnknownFailureError(CleanupRegistryError):
    """Stand-in for a failure that carried no exception of its own."""

    MESSAGE = "action failed without a reason"

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


__all__ = [
    "AlreadyTriggeredError",
    "AttemptTimeoutError",
    "CleanupRegistryError",
    "ConfigError",
    "LifecycleError",
    "UnknownFailureError",
]
