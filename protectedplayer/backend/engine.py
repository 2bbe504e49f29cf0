"""Reducer for playback commands and rendering-surface events."""

from __future__ import annotations

from dataclasses import dataclass, replace
import math
from typing import Any

from protectedplayer.backend.errors import InvalidVolume
from protectedplayer.backend.models import PlaybackState


@dataclass(frozen=True)
class CommandResult:
    state: PlaybackState
    events: list[dict[str, Any]]


def apply_playback_command(state: PlaybackState, command: dict[str, Any]) -> CommandResult:
    """Apply one command to the playback state and report what changed."""
    command_type = str(command.get("type", "")).upper()
    if command_type == "TOGGLE_PLAY":
        return _apply_toggle_play(state=state)
    if command_type == "SEEK":
        return _apply_seek(state=state, command=command)
    if command_type == "SET_VOLUME":
        return _apply_set_volume(state=state, command=command)
    if command_type == "TOGGLE_MUTE":
        return _apply_toggle_mute(state=state)
    if command_type == "TOGGLE_FULLSCREEN":
        return _apply_set_fullscreen(state=state, value=not state.is_fullscreen)
    if command_type == "SET_FULLSCREEN":
        return _apply_set_fullscreen(state=state, value=bool(command.get("value")))
    if command_type == "TIME_UPDATE":
        return _apply_time_update(state=state, command=command)
    if command_type == "PAUSE_DETECTED":
        return _apply_pause_detected(state=state)
    if command_type == "SHOW_CONTROLS":
        return _apply_controls(state=state, visible=True)
    if command_type == "HIDE_CONTROLS":
        return _apply_controls(state=state, visible=False)
    return CommandResult(state=state, events=[])


def _finite(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _apply_toggle_play(state: PlaybackState) -> CommandResult:
    if state.is_playing:
        return CommandResult(state=replace(state, is_playing=False), events=[{"kind": "paused"}])
    return CommandResult(state=replace(state, is_playing=True), events=[{"kind": "resumed"}])


def _apply_seek(state: PlaybackState, command: dict[str, Any]) -> CommandResult:
    duration = state.duration_seconds
    if duration <= 0:
        return CommandResult(state=state, events=[])
    target = min(max(_finite(command.get("position")), 0.0), duration)
    return CommandResult(
        state=replace(state, position_seconds=target),
        events=[{"kind": "seeked", "position": target}],
    )


def _apply_set_volume(state: PlaybackState, command: dict[str, Any]) -> CommandResult:
    try:
        volume = float(command.get("volume"))
    except (TypeError, ValueError) as exc:
        raise InvalidVolume() from exc
    if not 0.0 <= volume <= 1.0:
        raise InvalidVolume()

    if volume == 0.0:
        next_state = replace(state, is_muted=True)
    else:
        next_state = replace(state, volume=volume, is_muted=False)
    return CommandResult(
        state=next_state,
        events=[{"kind": "volume_changed", "volume": next_state.effective_volume}],
    )


def _apply_toggle_mute(state: PlaybackState) -> CommandResult:
    next_state = replace(state, is_muted=not state.is_muted)
    return CommandResult(
        state=next_state,
        events=[{"kind": "volume_changed", "volume": next_state.effective_volume}],
    )


def _apply_set_fullscreen(state: PlaybackState, value: bool) -> CommandResult:
    if state.is_fullscreen == value:
        return CommandResult(state=state, events=[])
    return CommandResult(
        state=replace(state, is_fullscreen=value),
        events=[{"kind": "fullscreen_changed", "fullscreen": value}],
    )


def _apply_time_update(state: PlaybackState, command: dict[str, Any]) -> CommandResult:
    duration = max(_finite(command.get("duration")), 0.0)
    position = max(_finite(command.get("position")), 0.0)
    if duration > 0:
        position = min(position, duration)
    return CommandResult(
        state=replace(state, position_seconds=position, duration_seconds=duration),
        events=[],
    )


def _apply_pause_detected(state: PlaybackState) -> CommandResult:
    return CommandResult(state=replace(state, is_playing=False), events=[{"kind": "paused"}])


def _apply_controls(state: PlaybackState, visible: bool) -> CommandResult:
    if state.controls_visible == visible:
        return CommandResult(state=state, events=[])
    return CommandResult(state=replace(state, controls_visible=visible), events=[])
