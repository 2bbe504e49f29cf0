"""Cancellable timers keyed by kind, with at most one pending timer per kind."""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run callback once after delay seconds."""


class AsyncioScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        return asyncio.get_running_loop().call_later(delay, callback)


class TimerRegistry:
    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._pending: dict[str, Cancellable] = {}

    def start(self, kind: str, delay: float, callback: Callable[[], None]) -> None:
        """Schedule callback under kind, cancelling any pending timer of that kind."""
        self.cancel(kind)

        def fire() -> None:
            if self._pending.get(kind) is handle:
                del self._pending[kind]
                callback()

        handle = self._scheduler.call_later(delay, fire)
        self._pending[kind] = handle

    def cancel(self, kind: str) -> None:
        handle = self._pending.pop(kind, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for kind in list(self._pending):
            self.cancel(kind)

    def is_pending(self, kind: str) -> bool:
        return kind in self._pending
