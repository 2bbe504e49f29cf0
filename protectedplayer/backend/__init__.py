"""Backend package for the protected media player."""

from .config import PlayerSettings, load_settings
from .fetcher import HttpxTransport, ResourceFetcher, ResourceHandle
from .gate import evaluate
from .security import decode_locator, encode_locator, generate_share_token
from .session import SessionLifecycleManager
from .share import ShareLinkBuilder, parse_incoming
from .store import InMemoryResourceStore, ResourceStore

__all__ = [
    "decode_locator",
    "encode_locator",
    "evaluate",
    "generate_share_token",
    "HttpxTransport",
    "InMemoryResourceStore",
    "load_settings",
    "parse_incoming",
    "PlayerSettings",
    "ResourceFetcher",
    "ResourceHandle",
    "ResourceStore",
    "SessionLifecycleManager",
    "ShareLinkBuilder",
]
