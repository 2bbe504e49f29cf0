"""State builders for new sessions and rendering-surface snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from protectedplayer.backend.models import PlaybackState, Session, SessionState


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_initial_playback() -> PlaybackState:
    """Return the playback state a freshly loaded session starts from."""
    return PlaybackState(
        is_playing=False,
        position_seconds=0.0,
        duration_seconds=0.0,
        volume=1.0,
        is_muted=False,
        is_fullscreen=False,
        controls_visible=True,
    )


def build_surface_state(state: SessionState, session: Session | None) -> dict[str, Any]:
    """Project the session onto what the rendering surface may see.

    The source locator is deliberately absent.
    """
    if session is None or not session.is_live:
        return {"state": state.value, "session": None}

    playback = session.playback
    return {
        "state": state.value,
        "session": {
            "displayName": session.display_name,
            "resourceReference": session.surface_reference,
            "isPlaying": playback.is_playing,
            "positionSeconds": playback.position_seconds,
            "durationSeconds": playback.duration_seconds,
            "volume": playback.volume,
            "effectiveVolume": playback.effective_volume,
            "isMuted": playback.is_muted,
            "isFullscreen": playback.is_fullscreen,
            "controlsVisible": playback.controls_visible,
            "createdAt": session.created_at.isoformat(),
        },
    }
