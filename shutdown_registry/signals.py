"""Signal-aware trigger: run the registry's drain pass on SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Iterable, List, Optional, Union

from .models import FinishStatus, TriggerOptions
from .registry import CleanupRegistry

SignalSpec = Union[int, str, signal.Signals]


def resolve_signals(names: Iterable[SignalSpec]) -> List[signal.Signals]:
    """Turn names such as ``"SIGTERM"`` (or numbers) into ``signal.Signals``."""

    resolved: List[signal.Signals] = []
    for name in names:
        if isinstance(name, str):
            try:
                resolved.append(signal.Signals[name.upper()])
            except KeyError:
                raise ValueError(f"Unknown signal name: {name}") from None
        else:
            resolved.append(signal.Signals(name))
    return resolved


class SignalTrigger:
    def __init__(
        self,
        registry: CleanupRegistry,
        *,
        options: Optional[TriggerOptions] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.options = options
        self.logger = logger or registry.logger
        self._event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional["asyncio.Task[FinishStatus]"] = None
        self._installed: List[signal.Signals] = []
        self._fallback: List[signal.Signals] = []

    def install(self, signals: Optional[Iterable[SignalSpec]] = None) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        targets = resolve_signals(signals) if signals is not None else [signal.SIGINT, signal.SIGTERM]
        for sig in targets:
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig)
            except NotImplementedError:  # pragma: no cover - windows fallback
                signal.signal(sig, lambda signum, _frame: loop.call_soon_threadsafe(self.handle_signal, signum))
                self._fallback.append(sig)
            self._installed.append(sig)
        self.logger.debug("Installed shutdown signal handlers: %s", ", ".join(s.name for s in targets))

    def uninstall(self) -> None:
        for sig in self._installed:
            if sig in self._fallback:  # pragma: no cover - windows fallback
                signal.signal(sig, signal.SIG_DFL)
            elif self._loop is not None and not self._loop.is_closed():
                self._loop.remove_signal_handler(sig)
        self._installed = []
        self._fallback = []

    def handle_signal(self, signum: SignalSpec) -> None:
        name = signal.Signals(signum).name if not isinstance(signum, str) else signum
        if self._task is not None:
            self.logger.info("Received %s while shutdown is already in progress; ignoring", name)
            return
        self.logger.warning("Received %s, starting cleanup", name)
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="shutdown-registry-trigger")

    async def _run(self) -> FinishStatus:
        try:
            return await self.registry.trigger(self.options)
        finally:
            self._event.set()

    @property
    def event(self) -> asyncio.Event:
        return self._event

    def is_triggered(self) -> bool:
        return self._task is not None

    async def wait(self) -> FinishStatus:
        """Wait for the signal-driven pass; re-raises a strict hook failure."""

        await self._event.wait()
        if self._task is None:
            raise RuntimeError("trigger event was set without a drain task")
        return await self._task


__all__ = ["SignalTrigger", "resolve_signals"]
