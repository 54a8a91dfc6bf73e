"""Cleanup registry: the guarded collection and its public lifecycle surface."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, List, Optional, Tuple

from .drain import DrainEngine, DrainPass, HookFailed
from .errors import AlreadyTriggeredError
from .events import EventBus, EventSink, Handler
from .logging_utils import LOGGER_NAME
from .models import (
    DEFAULT_TRIGGER_OPTIONS,
    AsyncAction,
    CleanupItem,
    FinishStatus,
    ItemId,
    Lifecycle,
    RegistryOptions,
    TriggerOptions,
    validate_seconds,
)


class CleanupRegistry:
    """Holds cleanup actions and drains them once on ``trigger()``.

    Lifecycle: ``idle -> draining -> finished``; ``clear()`` returns to
    ``idle``. ``register``/``remove``/``trigger`` only work while idle.

    Calling ``clear()`` while a pass is still draining is not supported for
    deterministic results: the running pass is detached (it stops retrying
    and publishes its own ``finished`` event) and the registry starts over.
    """

    def __init__(
        self,
        options: Optional[RegistryOptions] = None,
        *,
        events: Optional[EventSink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.options = options or RegistryOptions()
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.events: EventSink = events if events is not None else EventBus(logger=self.logger)
        self._engine = DrainEngine(self.options, self.events, logger=self.logger)
        self._items: List[CleanupItem] = []
        self._lifecycle = Lifecycle.IDLE
        self._status: Optional[FinishStatus] = None
        self._generation = 0
        self._pass: Optional[DrainPass] = None

    # ------------------------------------------------------------------
    @property
    def overall_timeout(self) -> float:
        return self.options.overall_timeout

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def status(self) -> Optional[FinishStatus]:
        return self._status

    @property
    def items(self) -> Tuple[CleanupItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe ``handler`` to ``event`` on the registry's event sink."""

        subscribe = getattr(self.events, "subscribe", None)
        if subscribe is None:
            raise TypeError(f"event sink {type(self.events).__name__} does not support subscriptions")
        return subscribe(event, handler)

    # ------------------------------------------------------------------
    def register(
        self,
        action: AsyncAction,
        *,
        id: Optional[ItemId] = None,
        timeout: Optional[float] = None,
        retry_delay: Optional[float] = None,
    ) -> ItemId:
        """Add a cleanup action and return the id it was registered under."""

        self._ensure_idle("register")
        if not callable(action):
            raise TypeError(f"cleanup action must be callable, got {action!r}")

        overall = self.options.overall_timeout
        item_timeout = overall if timeout is None else validate_seconds("timeout", timeout, limit=overall, positive=True)
        if retry_delay is None:
            item_delay = self.options.retry_delay
        else:
            item_delay = validate_seconds("retry_delay", retry_delay, limit=overall)

        item_id = id if id is not None else _generate_id(action)
        self._items.append(CleanupItem(action=action, id=item_id, timeout=item_timeout, retry_delay=item_delay))
        self.logger.debug("Registered cleanup item %r (timeout %.3fs, retry delay %.3fs)", item_id, item_timeout, item_delay)
        return item_id

    def remove(self, action: Optional[AsyncAction] = None, *, id: Optional[ItemId] = None) -> int:
        """Remove every item matching all supplied discriminators; return how many."""

        self._ensure_idle("remove")
        if action is None and id is None:
            raise ValueError("remove() requires an action, an id, or both")
        kept = [item for item in self._items if not item.matches(action, id)]
        removed = len(self._items) - len(kept)
        self._items = kept
        self.logger.debug("Removed %d cleanup item(s)", removed)
        return removed

    async def trigger(self, options: Optional[TriggerOptions] = None) -> FinishStatus:
        """Drain every registered item once and return the finish status.

        Raises:
            AlreadyTriggeredError: the registry is not idle.
            Exception: the hook's own error, when a hook fails in strict mode.
        """

        self._ensure_idle("trigger")
        trigger_options = options or DEFAULT_TRIGGER_OPTIONS
        self._lifecycle = Lifecycle.DRAINING
        self._status = None
        drain = DrainPass(self._generation, on_finish=self._on_pass_finished)
        self._pass = drain
        snapshot = tuple(self._items)
        try:
            return await self._engine.run(drain, snapshot, trigger_options)
        except HookFailed as failure:
            raise failure.error from None
        finally:
            drain.cancel_deadline()

    def clear(self) -> None:
        """Forget every item and return to ``idle``; always succeeds."""

        if self._pass is not None and not self._pass.finished:
            self.logger.warning("clear() called while a drain pass is still running; detaching it")
            self._pass.detach()
        elif self._pass is not None:
            self._pass.cancel_deadline()
        self._pass = None
        self._generation += 1
        self._items = []
        self._lifecycle = Lifecycle.IDLE
        self._status = None

    # ------------------------------------------------------------------
    def _ensure_idle(self, operation: str) -> None:
        if self._lifecycle is not Lifecycle.IDLE:
            raise AlreadyTriggeredError(operation, self._lifecycle.value)

    def _on_pass_finished(self, drain: DrainPass) -> None:
        if drain.generation != self._generation:
            return
        self._lifecycle = Lifecycle.FINISHED
        self._status = drain.status


def _generate_id(action: Any) -> ItemId:
    name = getattr(action, "__name__", None)
    if isinstance(name, str) and name and "<lambda>" not in name:
        return name
    return f"cleanup-{uuid.uuid4().hex[:12]}"


__all__ = ["CleanupRegistry"]
