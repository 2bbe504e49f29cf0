"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from protectedplayer.backend.models import AccessPolicy

ENV_PREFIX = "PROTECTEDPLAYER_"
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class PlayerSettings:
    host: str
    port: int
    public_base_url: str
    fetch_timeout: float
    detach_delay: float
    controls_hide_delay: float
    controls_leave_delay: float
    notice_duration: float
    allowed_domains: tuple[str, ...]
    allowed_referrers: tuple[str, ...]
    enable_domain_check: bool
    enable_referrer_check: bool
    log_level: str

    def policy(self) -> AccessPolicy:
        return AccessPolicy(
            allowed_domains=frozenset(self.allowed_domains),
            allowed_referrers=self.allowed_referrers,
            enable_domain_check=self.enable_domain_check,
            enable_referrer_check=self.enable_referrer_check,
        )


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_list(name: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in _env(name, "").split(",") if item.strip())


def _env_bool(name: str) -> bool:
    return _env(name, "false").strip().lower() in TRUE_VALUES


def load_settings() -> PlayerSettings:
    port_raw = _env("PORT", "8000")
    host = _env("HOST", "127.0.0.1")
    return PlayerSettings(
        host=host,
        port=int(port_raw),
        public_base_url=_env("PUBLIC_BASE_URL", f"http://{host}:{port_raw}/"),
        fetch_timeout=float(_env("FETCH_TIMEOUT", "30")),
        detach_delay=float(_env("DETACH_DELAY", "2")),
        controls_hide_delay=float(_env("CONTROLS_HIDE_DELAY", "3")),
        controls_leave_delay=float(_env("CONTROLS_LEAVE_DELAY", "1")),
        notice_duration=float(_env("NOTICE_DURATION", "3")),
        allowed_domains=_env_list("ALLOWED_DOMAINS"),
        allowed_referrers=_env_list("ALLOWED_REFERRERS"),
        enable_domain_check=_env_bool("ENABLE_DOMAIN_CHECK"),
        enable_referrer_check=_env_bool("ENABLE_REFERRER_CHECK"),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )
