"""Value types shared by the registry and the drain engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Hashable, Mapping, Optional

from .errors import ConfigError

AsyncAction = Callable[[], Awaitable[Any]]
ItemId = Hashable

# ---------------------------------------------------------------------------
# Defaults (seconds)
# ---------------------------------------------------------------------------

DEFAULT_OVERALL_TIMEOUT = 10.0
DEFAULT_RETRY_DELAY = 0.5
# Attempt timeouts already consumed their own slice of the budget, so the
# next attempt starts right away: an action that never settles fails once per
# per-attempt timeout, i.e. overall_timeout / timeout times per pass. A
# non-zero default would break that cadence.
DEFAULT_TIMEOUT_BACKOFF = 0.0


class Lifecycle(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"
    FINISHED = "finished"


class FinishStatus(str, Enum):
    SUCCESS = "success"
    TIMED_OUT = "timed-out"
    PRE_HOOK_FAILED = "pre-hook-failed"
    POST_HOOK_FAILED = "post-hook-failed"


@dataclass(frozen=True)
class CleanupItem:
    """One registered cleanup operation."""

    action: AsyncAction
    id: ItemId
    timeout: float
    retry_delay: float

    def matches(self, action: Optional[AsyncAction] = None, id: Optional[ItemId] = None) -> bool:
        """Return True when every supplied discriminator matches this item.

        Actions are compared by identity, never by equality.
        """

        if action is not None and self.action is not action:
            return False
        if id is not None and self.id != id:
            return False
        return True


def validate_seconds(
    field: str,
    value: Any,
    *,
    limit: Optional[float] = None,
    positive: bool = False,
) -> float:
    """Return ``value`` as a finite number of seconds or raise ``ConfigError``.

    ``positive`` requires ``> 0`` instead of ``>= 0``; ``limit`` is an
    inclusive upper bound (the overall timeout).
    """

    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{field} must be a number, got {value!r}", field=field, value=value) from None
    if not math.isfinite(number):
        raise ConfigError(f"{field} must be a finite number, got {value}", field=field, value=value)
    if positive and number <= 0:
        raise ConfigError(f"{field} must be > 0, got {value}", field=field, value=value, limit=0)
    if number < 0:
        raise ConfigError(f"{field} must be >= 0, got {value}", field=field, value=value, limit=0)
    if limit is not None and number > limit:
        raise ConfigError.exceeds(field, number, limit)
    return number


@dataclass(frozen=True)
class RegistryOptions:
    """Registry-wide settings.

    ``retry_delay`` and ``timeout_backoff`` left as ``None`` resolve to their
    defaults capped at ``overall_timeout``; explicit values above it are
    rejected.
    """

    overall_timeout: float = DEFAULT_OVERALL_TIMEOUT
    retry_delay: Optional[float] = None
    timeout_backoff: Optional[float] = None
    pre_cleanup: Optional[AsyncAction] = None
    post_cleanup: Optional[AsyncAction] = None

    def __post_init__(self) -> None:
        overall = validate_seconds("overall_timeout", self.overall_timeout, positive=True)
        object.__setattr__(self, "overall_timeout", overall)
        for field, default in (("retry_delay", DEFAULT_RETRY_DELAY), ("timeout_backoff", DEFAULT_TIMEOUT_BACKOFF)):
            value = getattr(self, field)
            if value is None:
                resolved = min(default, overall)
            else:
                resolved = validate_seconds(field, value, limit=overall)
            object.__setattr__(self, field, resolved)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        pre_cleanup: Optional[AsyncAction] = None,
        post_cleanup: Optional[AsyncAction] = None,
    ) -> "RegistryOptions":
        """Build options from a loaded configuration (or its ``registry`` section)."""

        section = config.get("registry", config)
        return cls(
            overall_timeout=section.get("overall_timeout", DEFAULT_OVERALL_TIMEOUT),
            retry_delay=section.get("retry_delay"),
            timeout_backoff=section.get("timeout_backoff"),
            pre_cleanup=pre_cleanup,
            post_cleanup=post_cleanup,
        )


@dataclass(frozen=True)
class TriggerOptions:
    """Whether a failing pre/post hook aborts the pass and reaches the caller."""

    strict_pre_hook: bool = False
    strict_post_hook: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TriggerOptions":
        section = config.get("trigger", config)
        return cls(
            strict_pre_hook=bool(section.get("strict_pre_hook", False)),
            strict_post_hook=bool(section.get("strict_post_hook", False)),
        )


DEFAULT_TRIGGER_OPTIONS = TriggerOptions()


__all__ = [
    "AsyncAction",
    "CleanupItem",
    "DEFAULT_OVERALL_TIMEOUT",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_TIMEOUT_BACKOFF",
    "DEFAULT_TRIGGER_OPTIONS",
    "FinishStatus",
    "ItemId",
    "validate_seconds",
    "Lifecycle",
    "RegistryOptions",
    "TriggerOptions",
]
