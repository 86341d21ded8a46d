"""
Token inspection helpers.

Tokens are opaque to the client, but the backend issues JWTs, so an
expiry claim can be read without the signing key. This is only used
to skip restoring an obviously dead token; the server stays the
authority on validity.
"""
from datetime import datetime, timezone
from typing import Optional

import jwt

from authcore.utils.logger import get_logger

logger = get_logger(__name__)


def get_token_expiry(token: str) -> Optional[datetime]:
    """Return the `exp` claim of a JWT, or None if absent or not a JWT."""
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError:
        return None

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def is_token_expired(token: str, now: Optional[datetime] = None) -> bool:
    """True only for tokens carrying an `exp` in the past."""
    expiry = get_token_expiry(token)
    if expiry is None:
        return False
    now = now or datetime.now(timezone.utc)
    expired = now >= expiry
    if expired:
        logger.info(f"Stored token expired at {expiry.isoformat()}")
    return expired
