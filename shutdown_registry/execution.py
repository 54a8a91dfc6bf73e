"""Timeout-bounded execution of a single cleanup attempt.

An attempt that outlives its timeout is abandoned rather than cancelled: the
underlying task keeps running in the background and whatever it eventually
produces is logged and discarded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Set

from .errors import AttemptTimeoutError, UnknownFailureError
from .logging_utils import LOGGER_NAME
from .models import AsyncAction

logger = logging.getLogger(LOGGER_NAME)

# asyncio only keeps weak references to tasks; abandoned attempts live here
# until they settle.
_abandoned: Set["asyncio.Future[Any]"] = set()


def abandoned_attempts() -> int:
    """Number of abandoned attempts that have not settled yet."""

    return len(_abandoned)


def _abandon(task: "asyncio.Future[Any]", reason: str) -> None:
    if task.done():
        _settled(task)
        return
    logger.debug("Abandoning attempt %r (%s)", task, reason)
    _abandoned.add(task)
    task.add_done_callback(_settled)


def _settled(task: "asyncio.Future[Any]") -> None:
    _abandoned.discard(task)
    if task.cancelled():
        logger.debug("Abandoned attempt %r was cancelled", task)
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned attempt %r failed after being given up: %r", task, exc)
    else:
        logger.debug("Abandoned attempt %r completed after being given up", task)


async def run_with_timeout(action: AsyncAction, timeout: float) -> Any:
    """Run ``action()`` and return its result, giving up after ``timeout`` seconds.

    Raises:
        AttemptTimeoutError: the attempt did not settle in time.
        UnknownFailureError: the attempt ended without a result or an
            exception of its own (its awaitable was cancelled elsewhere).
        Exception: whatever the action itself raised, unchanged.
    """

    task = asyncio.ensure_future(action())
    try:
        done, _ = await asyncio.wait((task,), timeout=timeout)
    except asyncio.CancelledError:
        _abandon(task, "caller cancelled")
        raise
    if not done:
        _abandon(task, f"timed out after {timeout} seconds")
        raise AttemptTimeoutError(timeout)
    if task.cancelled():
        raise UnknownFailureError()
    return task.result()


async def delay(seconds: float) -> None:
    await asyncio.sleep(max(0.0, seconds))


async def run_hook(hook: Optional[AsyncAction]) -> Optional[BaseException]:
    """Await a pre/post hook without a timeout; return its failure, if any."""

    if hook is None:
        return None
    try:
        await hook()
    except asyncio.CancelledError:
        task = asyncio.current_task()
        if task is not None and _is_cancelling(task):
            raise
        return UnknownFailureError()
    except Exception as exc:
        return exc
    return None


def _is_cancelling(task: "asyncio.Task[Any]") -> bool:
    cancelling = getattr(task, "cancelling", None)
    if cancelling is None:  # pragma: no cover - python < 3.11
        return True
    return bool(cancelling())


__all__ = ["abandoned_attempts", "delay", "run_hook", "run_with_timeout"]
