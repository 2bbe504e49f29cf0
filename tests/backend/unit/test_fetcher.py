import asyncio

import httpx
import pytest

from protectedplayer.backend.errors import (
    FetchTimeout,
    InvalidLocator,
    InvalidMediaType,
    NetworkError,
    ResourceReleased,
)
from protectedplayer.backend.fetcher import (
    HttpxTransport,
    ResourceFetcher,
    TransportError,
    extract_display_name,
    validate_locator,
)
from protectedplayer.backend.store import InMemoryResourceStore


@pytest.mark.parametrize(
    "locator",
    [
        "https://host/video.mp4",
        "http://host/path/AUDIO.FLAC?dl=1",
        "https://download.mediafire.com/abc/clip.m4v",
    ],
)
def test_validate_locator_accepts_transport_urls(locator: str) -> None:
    assert validate_locator(locator) == locator


def test_validate_locator_prefixes_scheme_for_hosting_services() -> None:
    target = validate_locator("www.mediafire.com/file/abc/movie.mkv")

    assert target == "https://www.mediafire.com/file/abc/movie.mkv"


@pytest.mark.parametrize(
    "locator",
    ["", "   ", "ftp://host/video.mp4", "host/video.mp4", "http://[::1/video.mp4", "https:///video.mp4"],
)
def test_validate_locator_rejects_invalid_locators(locator: str) -> None:
    with pytest.raises(InvalidLocator):
        validate_locator(locator)


@pytest.mark.parametrize(
    "locator",
    ["https://host/page.html", "https://host/video", "https://host/video.mp4.txt", "https://host/mp4/"],
)
def test_validate_locator_rejects_unsupported_extensions(locator: str) -> None:
    with pytest.raises(InvalidMediaType):
        validate_locator(locator)


@pytest.mark.parametrize(
    ("locator", "name"),
    [
        ("https://host/video.mp4", "video.mp4"),
        ("https://host/dir/My%20Movie.mkv?token=1", "My Movie.mkv"),
        ("https://host/", "Untitled media"),
    ],
)
def test_extract_display_name(locator: str, name: str) -> None:
    assert extract_display_name(locator) == name


def test_httpx_transport_returns_body_and_content_type() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"payload", headers={"content-type": "video/webm"})

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    media = asyncio.run(transport.fetch("https://host/clip.webm"))

    assert media.content == b"payload"
    assert media.content_type == "video/webm"
    assert "cookie" not in seen[0].headers


def test_httpx_transport_guesses_missing_content_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"payload")

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    media = asyncio.run(transport.fetch("https://host/clip.mp4"))

    assert media.content_type == "video/mp4"


def test_httpx_transport_raises_on_non_success_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.fetch("https://host/clip.mp4"))

    assert excinfo.value.status_code == 403


def test_httpx_transport_wraps_connection_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.fetch("https://host/clip.mp4"))

    assert excinfo.value.status_code is None


def test_fetch_wraps_bytes_in_releasable_handle(transport, store) -> None:
    fetcher = ResourceFetcher(transport=transport, store=store)

    handle = asyncio.run(fetcher.fetch("https://host/video.mp4"))

    assert handle.reference.startswith("blob:")
    assert "host" not in handle.reference
    assert handle.read() == transport.content
    assert handle.content_type == "video/mp4"
    assert store.live_references == [handle.reference]


def test_handle_release_is_idempotent_and_blocks_further_use(transport, store) -> None:
    fetcher = ResourceFetcher(transport=transport, store=store)
    handle = asyncio.run(fetcher.fetch("https://host/video.mp4"))
    reference = handle.reference

    handle.release()
    handle.release()

    assert handle.released is True
    assert store.revocations == {reference: 1}
    with pytest.raises(ResourceReleased):
        handle.read()
    with pytest.raises(ResourceReleased):
        _ = handle.reference


def test_fetch_validates_before_network(transport, store) -> None:
    fetcher = ResourceFetcher(transport=transport, store=store)

    with pytest.raises(InvalidMediaType):
        asyncio.run(fetcher.fetch("https://host/readme.txt"))

    assert transport.calls == []


def test_fetch_maps_transport_failure_to_generic_network_error(transport, store) -> None:
    transport.failures["https://host/missing.mp4"] = 404
    fetcher = ResourceFetcher(transport=transport, store=store)

    with pytest.raises(NetworkError) as excinfo:
        asyncio.run(fetcher.fetch("https://host/missing.mp4"))

    assert excinfo.value.status_code == 404
    assert "host" not in excinfo.value.message
    assert store.live_references == []


def test_fetch_is_bounded_by_timeout(transport, store) -> None:
    fetcher = ResourceFetcher(transport=transport, store=store, default_timeout=None)

    async def scenario() -> None:
        transport.block()
        await fetcher.fetch("https://host/slow.mp4", timeout=0.01)

    with pytest.raises(FetchTimeout):
        asyncio.run(scenario())

    assert store.live_references == []


@pytest.mark.parametrize("error", [ValueError("unknown url type"), httpx.InvalidURL("empty host")])
def test_httpx_transport_wraps_unusable_urls(error: Exception) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.fetch("https://host/video.mp4"))

    assert excinfo.value.status_code is None


def test_fetch_rejects_malformed_url_before_network(transport, store) -> None:
    fetcher = ResourceFetcher(transport=transport, store=store)

    with pytest.raises(InvalidLocator):
        asyncio.run(fetcher.fetch("http://[::1/video.mp4"))

    assert transport.calls == []
