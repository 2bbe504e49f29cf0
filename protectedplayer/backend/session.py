"""Lifecycle manager owning the single active playback session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from protectedplayer.backend.engine import apply_playback_command
from protectedplayer.backend.errors import (
    InvalidSharedLink,
    LoadCancelled,
    LoadInProgress,
    MalformedToken,
    NoActiveSession,
    PlayerError,
)
from protectedplayer.backend.fetcher import ResourceFetcher, ResourceHandle, extract_display_name, validate_locator
from protectedplayer.backend.gate import enforce
from protectedplayer.backend.models import (
    AccessPolicy,
    PlaybackState,
    RequestContext,
    Session,
    SessionState,
    ShareLink,
)
from protectedplayer.backend.notices import NoticeBoard
from protectedplayer.backend.security import decode_locator, generate_share_token
from protectedplayer.backend.share import ShareLinkBuilder, parse_incoming
from protectedplayer.backend.state import build_initial_playback, build_surface_state, utc_now
from protectedplayer.backend.timers import TimerRegistry

logger = logging.getLogger(__name__)

CONTROLS_TIMER = "controls"
DETACH_TIMER = "detach"
LOADED_MESSAGE = "Player loaded successfully."


class SessionLifecycleManager:
    """Owns at most one live session and every transition it goes through.

    States: IDLE -> LOADING -> ACTIVE <-> DETACHED -> RELEASED. Only one load may
    be in flight; a new load releases the previous session before fetching.
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        link_builder: ShareLinkBuilder,
        timers: TimerRegistry,
        *,
        policy: AccessPolicy | None = None,
        detach_delay: float = 2.0,
        controls_hide_delay: float = 3.0,
        controls_leave_delay: float = 1.0,
        notice_duration: float = 3.0,
    ) -> None:
        self._fetcher = fetcher
        self._link_builder = link_builder
        self._timers = timers
        self._policy = policy if policy is not None else AccessPolicy()
        self._detach_delay = detach_delay
        self._controls_hide_delay = controls_hide_delay
        self._controls_leave_delay = controls_leave_delay
        self._session: Session | None = None
        self._loading = False
        self._load_task: asyncio.Future[ResourceHandle] | None = None
        self._load_cancelled = False
        self._listeners: list[Callable[[], None]] = []
        self.notices = NoticeBoard(timers=timers, duration=notice_duration, on_change=self._notify)

    @property
    def state(self) -> SessionState:
        if self._loading:
            return SessionState.LOADING
        if self._session is None:
            return SessionState.IDLE
        return self._session.phase

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    def update_policy(self, policy: AccessPolicy) -> None:
        if self._loading:
            raise LoadInProgress()
        self._policy = policy
        logger.info(
            "Access policy updated (domain_check=%s, referrer_check=%s)",
            policy.enable_domain_check,
            policy.enable_referrer_check,
        )

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def load(
        self,
        locator: str,
        token: str | None = None,
        *,
        context: RequestContext | None = None,
        timeout: float | None = None,
    ) -> Session:
        if self._loading:
            raise LoadInProgress()

        policy = self._policy
        try:
            validate_locator(locator)
            enforce(policy, context or RequestContext(), locator)
        except PlayerError as exc:
            self.notices.post_error(exc.message)
            raise

        self._supersede()
        self._loading = True
        self._load_cancelled = False
        self.notices.clear()
        self._notify()

        display_name = extract_display_name(locator)
        logger.info("Loading %s", display_name)
        task = asyncio.ensure_future(self._fetcher.fetch(locator, timeout=timeout))
        self._load_task = task
        try:
            handle = await task
        except asyncio.CancelledError as exc:
            self._finish_load()
            _release_orphan(task)
            if self._load_cancelled:
                raise LoadCancelled() from exc
            raise
        except PlayerError as exc:
            self._finish_load()
            self.notices.post_error(exc.message)
            raise
        except BaseException:
            self._finish_load()
            _release_orphan(task)
            raise

        self._finish_load()
        if self._load_cancelled:
            handle.release()
            raise LoadCancelled()

        try:
            session = Session(
                source_locator=locator,
                display_name=display_name,
                handle=handle,
                share_token=token or generate_share_token(),
                created_at=utc_now(),
                playback=build_initial_playback(),
                phase=SessionState.ACTIVE,
                surface_reference=handle.reference,
            )
        except BaseException:
            handle.release()
            raise

        self._session = session
        logger.info("Session active: %s", display_name)
        self.notices.post_success(LOADED_MESSAGE)
        self._notify()
        return session

    async def restore(
        self,
        external_url: str,
        *,
        context: RequestContext | None = None,
        timeout: float | None = None,
    ) -> Session:
        """Rebuild a session from a share link, keeping its embedded token."""
        incoming = parse_incoming(external_url)
        if incoming is None:
            error = InvalidSharedLink("The link does not carry a shared session.")
            self.notices.post_error(error.message)
            raise error
        try:
            locator = decode_locator(incoming.encoded_locator)
        except MalformedToken as exc:
            logger.warning("Rejected shared link with malformed media parameter")
            error = InvalidSharedLink()
            self.notices.post_error(error.message)
            raise error from exc
        return await self.load(locator, token=incoming.token, context=context, timeout=timeout)

    def cancel_load(self) -> None:
        if not self._loading or self._load_task is None:
            return
        self._load_cancelled = True
        if self._load_task.done():
            _release_orphan(self._load_task)
        else:
            self._load_task.cancel()
        logger.info("Load cancelled")

    def release(self) -> None:
        session = self._session
        if session is None or not session.is_live:
            return
        self._release_session(session, reason="released")

    def close(self) -> None:
        """Tear down for host context exit: cancel loading, release, stop timers."""
        self.cancel_load()
        self.release()
        self._timers.cancel_all()

    def share_link(self) -> ShareLink:
        return self._link_builder.build(self._require_live())

    def snapshot(self) -> dict[str, Any]:
        return build_surface_state(self.state, self._session)

    def attached_resource(self, reference: str) -> tuple[bytes, str] | None:
        """Return bytes and content type while `reference` is attached to the surface."""
        session = self._session
        if session is None or session.phase is not SessionState.ACTIVE:
            return None
        if session.surface_reference is None or session.surface_reference != reference:
            return None
        return session.handle.read(), session.handle.content_type

    def toggle_play(self) -> PlaybackState:
        self._apply({"type": "TOGGLE_PLAY"})
        return self.interact()

    def seek(self, position: float) -> PlaybackState:
        self._apply({"type": "SEEK", "position": position})
        return self.interact()

    def set_volume(self, volume: float) -> PlaybackState:
        self._apply({"type": "SET_VOLUME", "volume": volume})
        return self.interact()

    def toggle_mute(self) -> PlaybackState:
        self._apply({"type": "TOGGLE_MUTE"})
        return self.interact()

    def toggle_fullscreen(self) -> PlaybackState:
        self._apply({"type": "TOGGLE_FULLSCREEN"})
        return self.interact()

    def interact(self) -> PlaybackState:
        """Show the controls and restart the auto-hide timer."""
        playback = self._apply({"type": "SHOW_CONTROLS"})
        self._timers.start(CONTROLS_TIMER, self._controls_hide_delay, self._auto_hide_controls)
        return playback

    def pointer_left(self) -> PlaybackState:
        session = self._require_live()
        self._timers.start(CONTROLS_TIMER, self._controls_leave_delay, self._auto_hide_controls)
        return session.playback

    def time_update(self, position: float, duration: float) -> PlaybackState:
        return self._apply({"type": "TIME_UPDATE", "position": position, "duration": duration})

    def pause_detected(self) -> PlaybackState:
        return self._apply({"type": "PAUSE_DETECTED"})

    def fullscreen_changed(self, fullscreen: bool) -> PlaybackState:
        return self._apply({"type": "SET_FULLSCREEN", "value": fullscreen})

    def _require_live(self) -> Session:
        session = self._session
        if self._loading or session is None or not session.is_live:
            raise NoActiveSession()
        return session

    def _apply(self, command: dict[str, Any]) -> PlaybackState:
        session = self._require_live()
        result = apply_playback_command(session.playback, command)
        session.playback = result.state
        for event in result.events:
            if event["kind"] == "paused":
                self._timers.start(DETACH_TIMER, self._detach_delay, self._detach_if_paused)
            elif event["kind"] == "resumed":
                self._timers.cancel(DETACH_TIMER)
                self._reattach(session)
        self._notify()
        return session.playback

    def _reattach(self, session: Session) -> None:
        if session.surface_reference is None:
            session.surface_reference = session.handle.reference
            logger.debug("Reattached %s", session.display_name)
        session.phase = SessionState.ACTIVE

    def _detach_if_paused(self) -> None:
        session = self._session
        if session is None or session.phase is not SessionState.ACTIVE or session.playback.is_playing:
            return
        session.surface_reference = None
        session.phase = SessionState.DETACHED
        logger.debug("Detached %s after pause", session.display_name)
        self._notify()

    def _auto_hide_controls(self) -> None:
        session = self._session
        if session is None or not session.is_live or not session.playback.is_playing:
            return
        session.playback = apply_playback_command(session.playback, {"type": "HIDE_CONTROLS"}).state
        self._notify()

    def _supersede(self) -> None:
        session = self._session
        if session is not None and session.is_live:
            self._release_session(session, reason="superseded")
        self._session = None

    def _release_session(self, session: Session, reason: str) -> None:
        self._timers.cancel(CONTROLS_TIMER)
        self._timers.cancel(DETACH_TIMER)
        session.surface_reference = None
        session.handle.release()
        session.phase = SessionState.RELEASED
        logger.info("Session %s: %s", reason, session.display_name)
        self._notify()

    def _finish_load(self) -> None:
        self._loading = False
        self._load_task = None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


def _release_orphan(task: asyncio.Future[ResourceHandle]) -> None:
    if task.done() and not task.cancelled() and task.exception() is None:
        task.result().release()
