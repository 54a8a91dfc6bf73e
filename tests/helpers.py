"""Shared helpers for the registry tests."""

from __future__ import annotations

import asyncio
from typing import Any, List, Tuple

from shutdown_registry import CleanupRegistry, RegistryEvent

OVERALL_TIMEOUT = 1.0


def fake_action(duration: float, *, succeed: bool):
    """Return an async action that settles after ``duration`` seconds."""

    async def _action() -> None:
        await asyncio.sleep(duration)
        if not succeed:
            raise RuntimeError("fake action failed")

    return _action


class EventRecorder:
    """Collects every event a registry publishes, in order."""

    def __init__(self, registry: CleanupRegistry) -> None:
        self.events: List[Tuple[str, Tuple[Any, ...]]] = []
        for event in RegistryEvent:
            registry.on(event, self._handler(event.value))

    def _handler(self, name: str):
        def _record(*payload: Any) -> None:
            self.events.append((name, payload))

        return _record

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> List[Tuple[Any, ...]]:
        return [payload for event, payload in self.events if event == name]

    def count(self, name: str) -> int:
        return len(self.payloads(name))
