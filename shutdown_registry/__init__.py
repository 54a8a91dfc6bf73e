"""Shutdown cleanup registry: drain registered async cleanups under one deadline."""

from .config import DEFAULT_CONFIG, ConfigLoadResult, load_config
from .errors import (
    AlreadyTriggeredError,
    AttemptTimeoutError,
    CleanupRegistryError,
    ConfigError,
    LifecycleError,
    UnknownFailureError,
)
from .events import EventBus, EventSink, RegistryEvent
from .logging_utils import configure_logging
from .models import (
    DEFAULT_OVERALL_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT_BACKOFF,
    CleanupItem,
    FinishStatus,
    Lifecycle,
    RegistryOptions,
    TriggerOptions,
)
from .registry import CleanupRegistry
from .signals import SignalTrigger

__all__ = [
    "AlreadyTriggeredError",
    "AttemptTimeoutError",
    "CleanupItem",
    "CleanupRegistry",
    "CleanupRegistryError",
    "ConfigError",
    "ConfigLoadResult",
    "DEFAULT_CONFIG",
    "DEFAULT_OVERALL_TIMEOUT",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_TIMEOUT_BACKOFF",
    "EventBus",
    "EventSink",
    "FinishStatus",
    "Lifecycle",
    "LifecycleError",
    "RegistryEvent",
    "RegistryOptions",
    "SignalTrigger",
    "TriggerOptions",
    "UnknownFailureError",
    "configure_logging",
    "load_config",
]
