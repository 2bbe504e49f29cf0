"""User-visible error and success messages that clear themselves."""

from __future__ import annotations

from typing import Callable

from protectedplayer.backend.timers import TimerRegistry


class NoticeBoard:
    def __init__(self, timers: TimerRegistry, duration: float, on_change: Callable[[], None] | None = None) -> None:
        self._timers = timers
        self._duration = duration
        self._on_change = on_change
        self._messages: dict[str, str] = {"error": "", "success": ""}

    @property
    def error(self) -> str:
        return self._messages["error"]

    @property
    def success(self) -> str:
        return self._messages["success"]

    def post_error(self, message: str) -> None:
        self._post("error", message)

    def post_success(self, message: str) -> None:
        self._post("success", message)

    def clear(self) -> None:
        for kind in self._messages:
            self._timers.cancel(f"notice.{kind}")
            self._messages[kind] = ""

    def as_dict(self) -> dict[str, str]:
        return dict(self._messages)

    def _post(self, kind: str, message: str) -> None:
        self._messages[kind] = message
        self._timers.start(f"notice.{kind}", self._duration, lambda: self._expire(kind))
        self._changed()

    def _expire(self, kind: str) -> None:
        self._messages[kind] = ""
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
