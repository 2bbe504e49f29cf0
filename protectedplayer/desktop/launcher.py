"""Desktop launcher: starts the player backend and opens share links using PyWebView."""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
import time
import webbrowser
from pathlib import Path
from urllib.parse import urljoin, urlsplit

from urllib import error, request

from protectedplayer.backend.config import ENV_PREFIX, PlayerSettings, load_settings
from protectedplayer.backend.share import parse_incoming

ROOT_DIR = Path(__file__).resolve().parents[2]
WINDOW_TITLE = "Protected Player"


def parse_args(argv: list[str] | None = None, settings: PlayerSettings | None = None) -> argparse.Namespace:
    player_settings = settings if settings is not None else load_settings()
    parser = argparse.ArgumentParser(description="Protected player launcher")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--media-url", default="")
    source.add_argument("--share-link", default="")
    parser.add_argument("--server", default=f"http://{player_settings.host}:{player_settings.port}")
    parser.add_argument("--start-server", action="store_true")
    parser.add_argument("--no-open", action="store_true")
    return parser.parse_args(argv)


def fetch_session_state(server_url: str) -> dict | None:
    """Return the backend's session snapshot, or None if it is not a player backend."""
    with request.urlopen(f"{server_url}/api/session", timeout=0.5) as response:
        payload = json.loads(response.read().decode("utf-8") or "{}")
    state = payload.get("state")
    return state if isinstance(state, dict) else None


def wait_for_server(server_url: str, timeout_s: float = 8.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        try:
            if fetch_session_state(server_url) is not None:
                return True
        except (error.URLError, TimeoutError, ValueError):
            pass
        time.sleep(0.2)
    return False


def server_environment(server_url: str, settings: PlayerSettings) -> dict[str, str]:
    """Environment for a backend bound to `server_url` that builds share links for it."""
    parts = urlsplit(server_url)
    env = os.environ.copy()
    env[f"{ENV_PREFIX}HOST"] = parts.hostname or settings.host
    env[f"{ENV_PREFIX}PORT"] = str(parts.port or settings.port)
    env.setdefault(f"{ENV_PREFIX}PUBLIC_BASE_URL", f"{server_url}/")
    env.setdefault(f"{ENV_PREFIX}LOG_LEVEL", settings.log_level)
    return env


def maybe_start_server(server_url: str, settings: PlayerSettings | None = None) -> subprocess.Popen[str] | None:
    player_settings = settings if settings is not None else load_settings()
    env = server_environment(server_url, player_settings)
    command = [
        sys.executable,
        "-m",
        "uvicorn",
        "protectedplayer.backend.api:app",
        "--host",
        env[f"{ENV_PREFIX}HOST"],
        "--port",
        env[f"{ENV_PREFIX}PORT"],
        "--log-level",
        player_settings.log_level.lower(),
    ]
    process = subprocess.Popen(command, cwd=str(ROOT_DIR), env=env)
    if wait_for_server(server_url):
        return process
    process.terminate()
    return None


def request_share_link(server_url: str, media_url: str) -> str:
    """Load media on the backend and return the composed share link."""
    body = json.dumps({"url": media_url}).encode("utf-8")
    load_request = request.Request(
        urljoin(f"{server_url}/", "api/session/load"),
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(load_request, timeout=60) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except error.HTTPError as exc:
        detail = json.loads(exc.read().decode("utf-8") or "{}")
        raise RuntimeError(detail.get("message", f"HTTP {exc.code}")) from exc
    share = payload["state"].get("share")
    if not share:
        raise RuntimeError("Backend did not return a share link")
    return share["url"]


def open_ui(url: str, title: str) -> None:
    try:
        import webview

        webview.create_window(title, url=url, width=1280, height=760, min_size=(640, 400))
        webview.start()
    except Exception:
        webbrowser.open(url)


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    args = parse_args(argv, settings=settings)

    if args.share_link and parse_incoming(args.share_link) is None:
        print("The link does not carry a shared session.", file=sys.stderr)
        return 2

    server_process: subprocess.Popen[str] | None = None
    if args.start_server:
        server_process = maybe_start_server(args.server, settings=settings)
        if server_process is None:
            print("Server could not be started.", file=sys.stderr)
            return 1
    elif not wait_for_server(args.server):
        print("Server not reachable. Use --start-server or run uvicorn manually.", file=sys.stderr)
        return 1

    try:
        if args.media_url:
            try:
                url = request_share_link(args.server, args.media_url)
            except RuntimeError as exc:
                print(f"Could not load media: {exc}", file=sys.stderr)
                return 1
            print(url)
        elif args.share_link:
            url = args.share_link
        else:
            url = f"{args.server}/"
        if not args.no_open:
            open_ui(url=url, title=WINDOW_TITLE)
    finally:
        if server_process is not None:
            server_process.terminate()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
