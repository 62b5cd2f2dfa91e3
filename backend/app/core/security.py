"""Token helpers used by the identity resolver."""

from __future__ import annotations

import logging
from typing import Any, Dict

import jwt

logger = logging.getLogger(__name__)


def decode_unverified_claims(token: str) -> Dict[str, Any]:
    """Decode a JWT payload without checking its signature or expiry.

    Only the development identity fallback calls this; the platform's
    validation endpoint is always tried first.
    """

    try:
        claims = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
            algorithms=["HS256", "RS256", "ES256"],
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("Unverified token decode failed: %s", exc)
        return {}
    return claims if isinstance(claims, dict) else {}


def decode_unverified_subject(token: str) -> str | None:
    """Return the ``sub`` claim of an unverified JWT, if any."""

    subject = decode_unverified_claims(token).get("sub")
    if subject in (None, ""):
        return None
    return str(subject)


def redact_secret(value: str | None, *, visible: int = 8) -> str:
    """Render a secret for logs: its prefix and length only."""

    if not value:
        return "<unset>"
    return f"{value[:visible]}... ({len(value)} chars)"
