"""Access gate evaluating domain and referrer policy before any fetch.

Disabled checks always pass. This fail-open default is an explicit
configuration choice: the gate raises the cost of casual embedding, it is not
an authorization layer.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from protectedplayer.backend.errors import AccessDenied, DenyReason
from protectedplayer.backend.models import AccessPolicy, GateDecision, RequestContext

logger = logging.getLogger(__name__)

ALLOW = GateDecision(allowed=True)


def origin_host(origin: str) -> str:
    """Return the lower-cased host of an origin, without port."""
    value = origin.strip()
    if not value:
        return ""
    if "://" not in value:
        value = f"//{value}"
    try:
        host = urlsplit(value).hostname
    except ValueError:
        logger.debug("Unparseable origin %r", origin)
        return ""
    return (host or "").lower()


def _check_domain(policy: AccessPolicy, context: RequestContext) -> DenyReason | None:
    if not policy.enable_domain_check:
        return None
    allowed = {domain.strip().lower() for domain in policy.allowed_domains}
    if origin_host(context.origin) in allowed:
        return None
    return DenyReason.DOMAIN_NOT_ALLOWED


def _check_referrer(policy: AccessPolicy, context: RequestContext) -> DenyReason | None:
    if not policy.enable_referrer_check or not policy.allowed_referrers:
        return None
    referrer = context.referrer.strip()
    if not referrer:
        return DenyReason.NO_REFERRER
    if any(referrer.startswith(prefix) for prefix in policy.allowed_referrers):
        return None
    return DenyReason.REFERRER_NOT_ALLOWED


def _deny_reason(policy: AccessPolicy, context: RequestContext) -> DenyReason | None:
    return _check_domain(policy, context) or _check_referrer(policy, context)


def evaluate(policy: AccessPolicy, context: RequestContext, locator: str) -> GateDecision:
    """Evaluate both checks; the first failing one decides the reason."""
    reason = _deny_reason(policy, context)
    if reason is None:
        return ALLOW
    return GateDecision(allowed=False, reason=reason)


def enforce(policy: AccessPolicy, context: RequestContext, locator: str) -> None:
    reason = _deny_reason(policy, context)
    if reason is None:
        return
    logger.warning("Access denied (%s) for origin=%r", reason.value, context.origin)
    raise AccessDenied(reason=reason)
