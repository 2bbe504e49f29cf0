"""Domain models for playback sessions, access policy and share links."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from protectedplayer.backend.errors import DenyReason

if TYPE_CHECKING:
    from protectedplayer.backend.fetcher import ResourceHandle


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"
    DETACHED = "detached"
    RELEASED = "released"


@dataclass(frozen=True)
class AccessPolicy:
    allowed_domains: frozenset[str] = frozenset()
    allowed_referrers: tuple[str, ...] = ()
    enable_domain_check: bool = False
    enable_referrer_check: bool = False


@dataclass(frozen=True)
class RequestContext:
    origin: str = ""
    referrer: str = ""


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: DenyReason | None = None


@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool = False
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume: float = 1.0
    is_muted: bool = False
    is_fullscreen: bool = False
    controls_visible: bool = True

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.is_muted else self.volume


@dataclass
class Session:
    source_locator: str = field(repr=False)
    display_name: str
    handle: ResourceHandle = field(repr=False)
    share_token: str
    created_at: datetime
    playback: PlaybackState = field(default_factory=PlaybackState)
    phase: SessionState = SessionState.ACTIVE
    surface_reference: str | None = None

    @property
    def is_live(self) -> bool:
        return self.phase in (SessionState.ACTIVE, SessionState.DETACHED)


@dataclass(frozen=True)
class ShareLink:
    token: str
    url: str
    created_at: datetime


@dataclass(frozen=True)
class IncomingShare:
    token: str
    encoded_locator: str
