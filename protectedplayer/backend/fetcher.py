"""Locator validation, byte transport and locally owned resource handles."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import mimetypes
import re
from typing import Protocol
from urllib.parse import SplitResult, unquote, urlsplit

import httpx

from protectedplayer.backend.errors import (
    FetchTimeout,
    InvalidLocator,
    InvalidMediaType,
    NetworkError,
    ResourceReleased,
)
from protectedplayer.backend.store import ResourceStore

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset(
    {"mp4", "mp3", "webm", "avi", "mov", "mkv", "flv", "wmv", "m4v", "wav", "ogg", "flac", "m4a"}
)
TRANSPORT_SCHEMES = frozenset({"http", "https"})
HOSTING_PATTERN = re.compile(
    r"^(?:https?://)?(?:[\w-]+\.)*(?:mediafire\.com|drive\.google\.com)(?::\d+)?/",
    re.IGNORECASE,
)
DEFAULT_CONTENT_TYPE = "application/octet-stream"
UNTITLED_MEDIA = "Untitled media"

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def _split(locator: str) -> SplitResult:
    try:
        return urlsplit(locator)
    except ValueError as exc:
        raise InvalidLocator("Malformed URL.") from exc


def media_extension(locator: str) -> str:
    path = _split(locator).path
    last_segment = path.rsplit("/", maxsplit=1)[-1]
    if "." not in last_segment:
        return ""
    return last_segment.rsplit(".", maxsplit=1)[-1].lower()


def validate_locator(locator: str) -> str:
    """Check a locator before any network call and return the URL to fetch.

    Scheme-less hosting-service links are fetched over https; the caller keeps
    the locator exactly as given.
    """
    candidate = locator.strip()
    if not candidate:
        raise InvalidLocator("Please enter a valid URL.")

    parts = _split(candidate)
    if parts.scheme.lower() in TRANSPORT_SCHEMES:
        if not parts.hostname:
            raise InvalidLocator("Malformed URL.")
        target = candidate
    elif HOSTING_PATTERN.match(candidate):
        target = f"https://{candidate}"
    else:
        raise InvalidLocator("Invalid URL. Use an http(s) link or a supported hosting service.")

    if media_extension(target) not in SUPPORTED_EXTENSIONS:
        raise InvalidMediaType()
    return target


def extract_display_name(locator: str) -> str:
    last_part = locator.split("/")[-1]
    name = unquote(last_part.split("?")[0].split("#")[0])
    return name or UNTITLED_MEDIA


@dataclass(frozen=True)
class FetchedMedia:
    content: bytes
    content_type: str


class TransportError(Exception):
    def __init__(self, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(f"transport failure (status={status_code})")


class Transport(Protocol):
    async def fetch(self, url: str) -> FetchedMedia:
        """Return the body of a 2xx response or raise TransportError."""


class HttpxTransport:
    """Transport backed by httpx with browser-like defaults and no credentials."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": DEFAULT_UA},
                timeout=httpx.Timeout(None),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(self, url: str) -> FetchedMedia:
        client = self._get_client()
        try:
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise TransportError() from exc
        if not response.is_success:
            raise TransportError(status_code=response.status_code)
        content_type = response.headers.get("content-type")
        if not content_type:
            content_type = mimetypes.guess_type(urlsplit(url).path)[0] or DEFAULT_CONTENT_TYPE
        return FetchedMedia(content=response.content, content_type=content_type)


class ResourceHandle:
    """Exclusive ownership of one materialized resource.

    The handle exposes only the opaque store reference. `release` revokes it
    exactly once; later calls are no-ops and any other use raises
    ResourceReleased.
    """

    def __init__(self, store: ResourceStore, reference: str, content_type: str) -> None:
        self._store = store
        self._reference = reference
        self._content_type = content_type
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def reference(self) -> str:
        self._ensure_live()
        return self._reference

    @property
    def content_type(self) -> str:
        self._ensure_live()
        return self._content_type

    def read(self) -> bytes:
        self._ensure_live()
        resource = self._store.get(self._reference)
        if resource is None:
            raise ResourceReleased()
        return resource.content

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._store.revoke(self._reference)

    def _ensure_live(self) -> None:
        if self._released:
            raise ResourceReleased()

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"ResourceHandle({self._reference!r}, {state})"


@dataclass
class ResourceFetcher:
    transport: Transport
    store: ResourceStore
    default_timeout: float | None = 30.0

    async def fetch(self, locator: str, *, timeout: float | None = None) -> ResourceHandle:
        target = validate_locator(locator)
        limit = self.default_timeout if timeout is None else timeout
        try:
            if limit is None:
                media = await self.transport.fetch(target)
            else:
                media = await asyncio.wait_for(self.transport.fetch(target), timeout=limit)
        except asyncio.TimeoutError as exc:
            logger.warning("Fetch timed out after %ss for %s", limit, extract_display_name(locator))
            raise FetchTimeout() from exc
        except TransportError as exc:
            logger.warning(
                "Fetch failed (status=%s) for %s", exc.status_code, extract_display_name(locator)
            )
            raise NetworkError(status_code=exc.status_code) from exc

        reference = self.store.create(media.content, media.content_type)
        return ResourceHandle(store=self.store, reference=reference, content_type=media.content_type)
