"""Token helpers: share token minting and the reversible locator codec."""

from __future__ import annotations

import base64
import binascii
import secrets

from protectedplayer.backend.errors import MalformedToken


TOKEN_BYTES = 12
TOKEN_PREFIX = "token-"


def generate_share_token() -> str:
    """Generate a URL-safe opaque token identifying a shared session."""
    return f"{TOKEN_PREFIX}{secrets.token_urlsafe(TOKEN_BYTES)}"


def encode_locator(locator: str) -> str:
    """Encode a source locator as standard base64 of its UTF-8 bytes."""
    return base64.b64encode(locator.encode("utf-8")).decode("ascii")


def decode_locator(encoded: str) -> str:
    """Reverse `encode_locator`, rejecting anything it could not have produced."""
    if not encoded:
        raise MalformedToken()
    try:
        raw = base64.b64decode(encoded.encode("ascii"), validate=True)
        return raw.decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError, binascii.Error) as exc:
        raise MalformedToken() from exc
