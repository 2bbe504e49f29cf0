from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from protectedplayer.backend.fetcher import FetchedMedia, ResourceFetcher, TransportError
from protectedplayer.backend.models import AccessPolicy
from protectedplayer.backend.session import SessionLifecycleManager
from protectedplayer.backend.share import ShareLinkBuilder
from protectedplayer.backend.store import InMemoryResourceStore
from protectedplayer.backend.timers import TimerRegistry

BASE_URL = "https://player.example/"


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.timers if not timer.cancelled and timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.when)
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]


class FakeTransport:
    def __init__(self, content: bytes = b"\x00\x00\x00\x18ftypmp42", content_type: str = "video/mp4") -> None:
        self.content = content
        self.content_type = content_type
        self.calls: list[str] = []
        self.failures: dict[str, int | None] = {}
        self.blocker: asyncio.Event | None = None
        self.on_fetch: Callable[[str], None] | None = None

    def block(self) -> asyncio.Event:
        self.blocker = asyncio.Event()
        return self.blocker

    async def fetch(self, url: str) -> FetchedMedia:
        self.calls.append(url)
        if self.on_fetch is not None:
            self.on_fetch(url)
        if self.blocker is not None:
            await self.blocker.wait()
        if url in self.failures:
            raise TransportError(status_code=self.failures[url])
        return FetchedMedia(content=self.content, content_type=self.content_type)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def store() -> InMemoryResourceStore:
    return InMemoryResourceStore()


@pytest.fixture
def make_manager(
    scheduler: FakeScheduler,
    transport: FakeTransport,
    store: InMemoryResourceStore,
) -> Callable[..., SessionLifecycleManager]:
    def factory(policy: AccessPolicy | None = None) -> SessionLifecycleManager:
        return SessionLifecycleManager(
            fetcher=ResourceFetcher(transport=transport, store=store, default_timeout=5.0),
            link_builder=ShareLinkBuilder(base_url=BASE_URL),
            timers=TimerRegistry(scheduler),
            policy=policy,
        )

    return factory


@pytest.fixture
def manager(make_manager: Callable[..., SessionLifecycleManager]) -> SessionLifecycleManager:
    return make_manager()
