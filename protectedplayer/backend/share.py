"""Composition and parsing of shareable session links."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from protectedplayer.backend.models import IncomingShare, Session, ShareLink
from protectedplayer.backend.security import encode_locator

TOKEN_PARAM = "token"
MEDIA_PARAM = "media"


@dataclass(frozen=True)
class ShareLinkBuilder:
    base_url: str

    def build(self, session: Session) -> ShareLink:
        """Compose the external link for a session; pure, no I/O."""
        parts = urlsplit(self.base_url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in (TOKEN_PARAM, MEDIA_PARAM)
        ]
        query.append((TOKEN_PARAM, session.share_token))
        query.append((MEDIA_PARAM, encode_locator(session.source_locator)))
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
        return ShareLink(token=session.share_token, url=url, created_at=session.created_at)


def parse_incoming(external_url: str) -> IncomingShare | None:
    """Return the token and encoded locator, or None when the URL is not a share link."""
    params = dict(parse_qsl(urlsplit(external_url).query, keep_blank_values=True))
    token = params.get(TOKEN_PARAM, "")
    # an unescaped "+" in base64 arrives as a space after form decoding
    media = params.get(MEDIA_PARAM, "").replace(" ", "+")
    if not token or not media:
        return None
    return IncomingShare(token=token, encoded_locator=media)
