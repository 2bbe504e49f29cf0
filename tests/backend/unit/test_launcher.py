import io
import json
from urllib import error

import pytest

from protectedplayer.backend.config import load_settings
from protectedplayer.desktop import launcher


class _FakeResponse(io.BytesIO):
    status = 200

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def test_parse_args_defaults(monkeypatch) -> None:
    monkeypatch.delenv("PROTECTEDPLAYER_HOST", raising=False)
    monkeypatch.delenv("PROTECTEDPLAYER_PORT", raising=False)
    args = launcher.parse_args([])

    assert args.server == "http://127.0.0.1:8000"
    assert args.media_url == ""
    assert args.share_link == ""
    assert args.start_server is False
    assert args.no_open is False


def test_parse_args_rejects_media_and_share_link_together() -> None:
    with pytest.raises(SystemExit):
        launcher.parse_args(["--media-url", "https://cdn.example/a.mp4", "--share-link", "https://p/?token=t&media=m"])


def test_request_share_link_posts_media_url(monkeypatch) -> None:
    seen = []

    def fake_urlopen(load_request, timeout):
        seen.append(load_request)
        payload = {"state": {"share": {"url": "https://player.example/?token=t&media=m"}}}
        return _FakeResponse(json.dumps(payload).encode("utf-8"))

    monkeypatch.setattr(launcher.request, "urlopen", fake_urlopen)

    url = launcher.request_share_link("http://127.0.0.1:8000", "https://cdn.example/a.mp4")

    assert url == "https://player.example/?token=t&media=m"
    assert seen[0].full_url == "http://127.0.0.1:8000/api/session/load"
    assert seen[0].get_method() == "POST"
    assert json.loads(seen[0].data) == {"url": "https://cdn.example/a.mp4"}


def test_request_share_link_surfaces_backend_message(monkeypatch) -> None:
    def fake_urlopen(load_request, timeout):
        body = io.BytesIO(json.dumps({"message": "Unsupported media type."}).encode("utf-8"))
        raise error.HTTPError(load_request.full_url, 400, "Bad Request", {}, body)

    monkeypatch.setattr(launcher.request, "urlopen", fake_urlopen)

    with pytest.raises(RuntimeError, match="Unsupported media type."):
        launcher.request_share_link("http://127.0.0.1:8000", "https://cdn.example/a.txt")


def test_main_prints_share_link_without_opening_ui(monkeypatch, capsys) -> None:
    monkeypatch.setattr(launcher, "wait_for_server", lambda server_url: True)
    monkeypatch.setattr(launcher, "request_share_link", lambda server_url, media_url: "https://player.example/?token=t")
    monkeypatch.setattr(launcher, "open_ui", lambda url, title: pytest.fail("UI should not open"))

    code = launcher.main(["--media-url", "https://cdn.example/a.mp4", "--no-open"])

    assert code == 0
    assert capsys.readouterr().out.strip() == "https://player.example/?token=t"


def test_main_fails_when_server_unreachable(monkeypatch, capsys) -> None:
    monkeypatch.setattr(launcher, "wait_for_server", lambda server_url: False)

    code = launcher.main(["--no-open"])

    assert code == 1
    assert "Server not reachable" in capsys.readouterr().err


def test_parse_args_server_follows_player_settings(monkeypatch) -> None:
    monkeypatch.setenv("PROTECTEDPLAYER_HOST", "0.0.0.0")
    monkeypatch.setenv("PROTECTEDPLAYER_PORT", "9100")

    args = launcher.parse_args([])

    assert args.server == "http://0.0.0.0:9100"


def test_server_environment_binds_backend_to_server_url(monkeypatch) -> None:
    monkeypatch.delenv("PROTECTEDPLAYER_PUBLIC_BASE_URL", raising=False)
    monkeypatch.setenv("PROTECTEDPLAYER_LOG_LEVEL", "debug")
    settings = load_settings()

    env = launcher.server_environment("http://127.0.0.1:8765", settings)

    assert env["PROTECTEDPLAYER_HOST"] == "127.0.0.1"
    assert env["PROTECTEDPLAYER_PORT"] == "8765"
    assert env["PROTECTEDPLAYER_PUBLIC_BASE_URL"] == "http://127.0.0.1:8765/"
    assert env["PROTECTEDPLAYER_LOG_LEVEL"] == "debug"


def test_fetch_session_state_requires_player_payload(monkeypatch) -> None:
    bodies = iter([{"state": {"state": "idle"}}, {"status": "ok"}])

    def fake_urlopen(url, timeout):
        return _FakeResponse(json.dumps(next(bodies)).encode("utf-8"))

    monkeypatch.setattr(launcher.request, "urlopen", fake_urlopen)

    assert launcher.fetch_session_state("http://127.0.0.1:8000") == {"state": "idle"}
    assert launcher.fetch_session_state("http://127.0.0.1:8000") is None


def test_main_rejects_link_without_shared_session(monkeypatch, capsys) -> None:
    monkeypatch.setattr(launcher, "wait_for_server", lambda server_url: pytest.fail("server should not be contacted"))

    code = launcher.main(["--share-link", "https://player.example/?lang=en", "--no-open"])

    assert code == 2
    assert "does not carry a shared session" in capsys.readouterr().err
