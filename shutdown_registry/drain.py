"""Drain engine: global deadline, per-item retry loops and the finishing step."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Sequence

from .errors import AttemptTimeoutError
from .events import EventSink, RegistryEvent
from .execution import delay, run_hook, run_with_timeout
from .logging_utils import LOGGER_NAME
from .models import CleanupItem, FinishStatus, RegistryOptions, TriggerOptions


class HookFailed(Exception):
    """Internal signal carrying a strict-mode hook failure out of ``DrainEngine.run``."""

    def __init__(self, status: FinishStatus, error: BaseException) -> None:
        super().__init__(str(error))
        self.status = status
        self.error = error


class DrainPass:
    """State of one drain pass: the deadline timer, expired flag and finish guard."""

    def __init__(
        self,
        generation: int,
        *,
        on_finish: Optional[Callable[["DrainPass"], None]] = None,
    ) -> None:
        self.generation = generation
        self.on_finish = on_finish
        self.expired = False
        self.detached = False
        self.status: Optional[FinishStatus] = None
        self._deadline: Optional[asyncio.TimerHandle] = None

    def start_deadline(self, timeout: float) -> None:
        if self.detached:
            return
        loop = asyncio.get_running_loop()
        self._deadline = loop.call_later(timeout, self.expire)

    def expire(self) -> None:
        self.expired = True

    def cancel_deadline(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    def detach(self) -> None:
        """Cut this pass loose from its registry; its loops stop at the next check."""

        self.detached = True
        self.cancel_deadline()
        self.expire()

    @property
    def deadline_pending(self) -> bool:
        return self._deadline is not None

    @property
    def finished(self) -> bool:
        return self.status is not None

    def finish(self, status: FinishStatus) -> FinishStatus:
        if self.status is not None:
            raise RuntimeError(f"drain pass already finished with status {self.status.value}")
        self.status = status
        self.cancel_deadline()
        if self.on_finish is not None and not self.detached:
            self.on_finish(self)
        return status


class DrainEngine:
    def __init__(
        self,
        options: RegistryOptions,
        events: EventSink,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.options = options
        self.events = events
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    async def run(
        self,
        drain: DrainPass,
        items: Sequence[CleanupItem],
        trigger_options: TriggerOptions,
    ) -> FinishStatus:
        """Run one pass to its finishing transition and return the status.

        Raises ``HookFailed`` (after ``finished`` was published) when a hook
        fails under strict mode.
        """

        self.logger.info(
            "Cleanup started: %d item(s), overall timeout %.3fs", len(items), self.options.overall_timeout
        )
        self.events.publish(RegistryEvent.STARTED)
        drain.start_deadline(self.options.overall_timeout)

        pre_error = await run_hook(self.options.pre_cleanup)
        if pre_error is not None:
            if trigger_options.strict_pre_hook:
                self.logger.error("Pre-cleanup hook failed: %r", pre_error)
                raise HookFailed(self._finish(drain, FinishStatus.PRE_HOOK_FAILED), pre_error)
            self.logger.warning("Pre-cleanup hook failed, continuing: %r", pre_error)

        await asyncio.gather(
            *(self._drain_item(drain, item) for item in items),
            return_exceptions=True,
        )

        post_error = await run_hook(self.options.post_cleanup)
        if post_error is not None:
            if trigger_options.strict_post_hook:
                self.logger.error("Post-cleanup hook failed: %r", post_error)
                raise HookFailed(self._finish(drain, FinishStatus.POST_HOOK_FAILED), post_error)
            self.logger.warning("Post-cleanup hook failed, continuing: %r", post_error)

        return self._finish(drain, FinishStatus.TIMED_OUT if drain.expired else FinishStatus.SUCCESS)

    # ------------------------------------------------------------------
    async def _drain_item(self, drain: DrainPass, item: CleanupItem) -> None:
        attempt = 0
        while True:
            attempt += 1
            context = {"item_id": item.id, "attempt": attempt}
            try:
                await run_with_timeout(item.action, item.timeout)
            except Exception as exc:
                self.logger.warning(
                    "Cleanup item %r failed (attempt %d): %r", item.id, attempt, exc, extra=context
                )
                self.events.publish(RegistryEvent.ITEM_FAILED, item.id, exc)
                if isinstance(exc, AttemptTimeoutError):
                    await delay(self.options.timeout_backoff)
                else:
                    await delay(item.retry_delay)
                if drain.expired:
                    self.logger.debug("Overall timeout reached, no more attempts for %r", item.id, extra=context)
                    return
            else:
                self.logger.debug("Cleanup item %r completed (attempt %d)", item.id, attempt, extra=context)
                self.events.publish(RegistryEvent.ITEM_COMPLETED, item.id)
                return

    def _finish(self, drain: DrainPass, status: FinishStatus) -> FinishStatus:
        drain.finish(status)
        if drain.detached:
            self.logger.warning(
                "Detached drain pass finished with status %s", status.value, extra={"status": status.value}
            )
        else:
            self.logger.info("Cleanup finished with status %s", status.value, extra={"status": status.value})
        self.events.publish(RegistryEvent.FINISHED, status)
        return status


__all__ = ["DrainEngine", "DrainPass", "HookFailed"]
