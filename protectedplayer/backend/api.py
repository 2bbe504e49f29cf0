"""FastAPI endpoints for session loading, playback commands and websocket sync."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .config import PlayerSettings, load_settings
from .errors import (
    AccessDenied,
    ContractViolation,
    FetchTimeout,
    InputValidationError,
    InvalidSharedLink,
    InvalidVolume,
    MalformedToken,
    NetworkError,
    PlayerError,
)
from .fetcher import HttpxTransport, ResourceFetcher, Transport
from .logs import configure_logging
from .models import AccessPolicy, RequestContext
from .session import SessionLifecycleManager
from .share import ShareLinkBuilder, parse_incoming
from .store import InMemoryResourceStore
from .timers import AsyncioScheduler, Scheduler, TimerRegistry

logger = logging.getLogger(__name__)


class LoadRequest(BaseModel):
    url: str = Field(min_length=1, max_length=4096)
    token: str | None = Field(default=None, min_length=1, max_length=200)


class RestoreRequest(BaseModel):
    link: str = Field(min_length=1, max_length=8192)


class SeekRequest(BaseModel):
    position: float


class VolumeRequest(BaseModel):
    volume: float


class TimeUpdateEvent(BaseModel):
    position: float
    duration: float


class FullscreenEvent(BaseModel):
    fullscreen: bool


class PolicyPayload(BaseModel):
    allowed_domains: list[str] = Field(default_factory=list)
    allowed_referrers: list[str] = Field(default_factory=list)
    enable_domain_check: bool = False
    enable_referrer_check: bool = False


class SessionStateResponse(BaseModel):
    state: dict[str, Any]


class ShareLinkResponse(BaseModel):
    token: str
    url: str
    created_at: str


class SessionWebSocketHub:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def send_state(self, websocket: WebSocket, state: dict[str, Any]) -> None:
        await websocket.send_json({"type": "state.full", "state": state})

    async def broadcast_state(self, state: dict[str, Any]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in list(self._connections):
            try:
                await self.send_state(websocket, state)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(websocket=websocket)


def error_status(exc: PlayerError) -> int:
    if isinstance(exc, InvalidVolume):
        return 422
    if isinstance(exc, (InputValidationError, MalformedToken, InvalidSharedLink)):
        return 400
    if isinstance(exc, AccessDenied):
        return 403
    if isinstance(exc, FetchTimeout):
        return 504
    if isinstance(exc, NetworkError):
        return 502
    if isinstance(exc, ContractViolation):
        return 409
    return 500


def request_context(request: Request) -> RequestContext:
    origin = request.headers.get("origin") or f"{request.url.scheme}://{request.url.netloc}"
    return RequestContext(origin=origin, referrer=request.headers.get("referer", ""))


def build_manager(
    settings: PlayerSettings,
    transport: Transport,
    scheduler: Scheduler | None = None,
) -> SessionLifecycleManager:
    fetcher = ResourceFetcher(
        transport=transport,
        store=InMemoryResourceStore(),
        default_timeout=settings.fetch_timeout,
    )
    return SessionLifecycleManager(
        fetcher=fetcher,
        link_builder=ShareLinkBuilder(base_url=settings.public_base_url),
        timers=TimerRegistry(scheduler if scheduler is not None else AsyncioScheduler()),
        policy=settings.policy(),
        detach_delay=settings.detach_delay,
        controls_hide_delay=settings.controls_hide_delay,
        controls_leave_delay=settings.controls_leave_delay,
        notice_duration=settings.notice_duration,
    )


def create_app(
    settings: PlayerSettings | None = None,
    manager: SessionLifecycleManager | None = None,
    transport: Transport | None = None,
) -> FastAPI:
    player_settings = settings if settings is not None else load_settings()
    media_transport = transport if transport is not None else HttpxTransport()
    session_manager = manager if manager is not None else build_manager(player_settings, media_transport)
    websocket_hub = SessionWebSocketHub()
    pending_broadcasts: set[asyncio.Task[None]] = set()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        configure_logging(player_settings.log_level)
        yield
        session_manager.close()
        if isinstance(media_transport, HttpxTransport):
            await media_transport.close()

    app = FastAPI(title="Protected Player API", version="0.1.0", lifespan=lifespan)
    app.state.websocket_hub = websocket_hub
    app.state.manager = session_manager

    def current_state() -> dict[str, Any]:
        state = session_manager.snapshot()
        state["notices"] = session_manager.notices.as_dict()
        session = session_manager.session
        if session is not None and session.is_live:
            link = session_manager.share_link()
            state["share"] = {"token": link.token, "url": link.url, "createdAt": link.created_at.isoformat()}
        else:
            state["share"] = None
        return state

    def publish_state() -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(websocket_hub.broadcast_state(current_state()))
        pending_broadcasts.add(task)
        task.add_done_callback(pending_broadcasts.discard)

    session_manager.add_listener(publish_state)

    def get_manager() -> SessionLifecycleManager:
        return session_manager

    @app.exception_handler(PlayerError)
    async def handle_player_error(_: Request, exc: PlayerError) -> JSONResponse:
        logger.info("Request rejected with %s", type(exc).__name__)
        return JSONResponse(
            status_code=error_status(exc),
            content={"error": type(exc).__name__, "message": exc.message, "state": current_state()},
        )

    @app.get("/", response_model=SessionStateResponse)
    async def entry(
        request: Request,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        if parse_incoming(str(request.url)) is not None:
            await local_manager.restore(str(request.url), context=request_context(request))
        return SessionStateResponse(state=current_state())

    @app.get("/api/session", response_model=SessionStateResponse)
    async def get_session() -> SessionStateResponse:
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/load", response_model=SessionStateResponse)
    async def load_session(
        payload: LoadRequest,
        request: Request,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        await local_manager.load(payload.url, token=payload.token, context=request_context(request))
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/restore", response_model=SessionStateResponse)
    async def restore_session(
        payload: RestoreRequest,
        request: Request,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        await local_manager.restore(payload.link, context=request_context(request))
        return SessionStateResponse(state=current_state())

    @app.delete("/api/session", response_model=SessionStateResponse)
    async def release_session(
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.release()
        return SessionStateResponse(state=current_state())

    @app.get("/api/session/share", response_model=ShareLinkResponse)
    async def get_share_link(
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> ShareLinkResponse:
        link = local_manager.share_link()
        return ShareLinkResponse(token=link.token, url=link.url, created_at=link.created_at.isoformat())

    @app.post("/api/session/commands/play", response_model=SessionStateResponse)
    async def command_play(local_manager: SessionLifecycleManager = Depends(get_manager)) -> SessionStateResponse:
        local_manager.toggle_play()
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/commands/seek", response_model=SessionStateResponse)
    async def command_seek(
        payload: SeekRequest,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.seek(payload.position)
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/commands/volume", response_model=SessionStateResponse)
    async def command_volume(
        payload: VolumeRequest,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.set_volume(payload.volume)
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/commands/mute", response_model=SessionStateResponse)
    async def command_mute(local_manager: SessionLifecycleManager = Depends(get_manager)) -> SessionStateResponse:
        local_manager.toggle_mute()
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/commands/fullscreen", response_model=SessionStateResponse)
    async def command_fullscreen(
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.toggle_fullscreen()
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/events/time-update", response_model=SessionStateResponse)
    async def event_time_update(
        payload: TimeUpdateEvent,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.time_update(position=payload.position, duration=payload.duration)
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/events/pause", response_model=SessionStateResponse)
    async def event_pause(local_manager: SessionLifecycleManager = Depends(get_manager)) -> SessionStateResponse:
        local_manager.pause_detected()
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/events/fullscreen", response_model=SessionStateResponse)
    async def event_fullscreen(
        payload: FullscreenEvent,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.fullscreen_changed(payload.fullscreen)
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/events/interaction", response_model=SessionStateResponse)
    async def event_interaction(
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.interact()
        return SessionStateResponse(state=current_state())

    @app.post("/api/session/events/pointer-left", response_model=SessionStateResponse)
    async def event_pointer_left(
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> SessionStateResponse:
        local_manager.pointer_left()
        return SessionStateResponse(state=current_state())

    @app.get("/api/resources/{reference:path}")
    async def get_resource(
        reference: str,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> Response:
        resource = local_manager.attached_resource(reference)
        if resource is None:
            raise HTTPException(status_code=404, detail="Resource not attached")
        content, content_type = resource
        return Response(
            content=content,
            media_type=content_type,
            headers={"Cache-Control": "no-store", "Content-Disposition": "inline"},
        )

    @app.get("/api/policy", response_model=PolicyPayload)
    async def get_policy(local_manager: SessionLifecycleManager = Depends(get_manager)) -> PolicyPayload:
        policy = local_manager.policy
        return PolicyPayload(
            allowed_domains=sorted(policy.allowed_domains),
            allowed_referrers=list(policy.allowed_referrers),
            enable_domain_check=policy.enable_domain_check,
            enable_referrer_check=policy.enable_referrer_check,
        )

    @app.put("/api/policy", response_model=PolicyPayload)
    async def put_policy(
        payload: PolicyPayload,
        local_manager: SessionLifecycleManager = Depends(get_manager),
    ) -> PolicyPayload:
        local_manager.update_policy(
            AccessPolicy(
                allowed_domains=frozenset(payload.allowed_domains),
                allowed_referrers=tuple(payload.allowed_referrers),
                enable_domain_check=payload.enable_domain_check,
                enable_referrer_check=payload.enable_referrer_check,
            )
        )
        return payload

    @app.websocket("/ws/session")
    async def session_ws(websocket: WebSocket) -> None:
        await websocket_hub.connect(websocket=websocket)
        await websocket_hub.send_state(websocket=websocket, state=current_state())

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(websocket=websocket)

    return app


app = create_app()
