"""
Short-lived access tokens.

A user resolved through Discord can be handed a signed HS256 token and
present it as `Authorization: Bearer <token>` instead of an API key. The
token carries only the user id (`sub`) and its expiry.
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

import jwt

from cardkeep.config import settings
from cardkeep.models.failure import UnauthenticatedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# Used when no signing key is configured; regenerated on every start
_RUNTIME_KEY = secrets.token_urlsafe(32)


def _signing_key() -> str:
    return settings.signing_key or _RUNTIME_KEY


def issue_access_token(user_id: int, lifetime: timedelta | None = None) -> str:
    """Sign an access token for `user_id`, valid for `lifetime` (default from settings)."""
    if lifetime is None:
        lifetime = timedelta(minutes=settings.access_token_minutes)

    now = datetime.now(UTC)
    payload = {"sub": str(user_id), "iat": now, "exp": now + lifetime}
    token = jwt.encode(payload, _signing_key(), algorithm=JWT_ALGORITHM)

    logger.debug("Issued access token for user %d", user_id)
    return token


def decode_access_token(token: str) -> int:
    """
    Verify an access token and return the user id it was issued for.

    Raises UnauthenticatedError if the token is expired, tampered with or
    signed with another key.
    """
    try:
        payload = jwt.decode(
            token,
            _signing_key(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise UnauthenticatedError("User credentials have expired.") from e
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected access token: %s", e)
        raise UnauthenticatedError("Access token verification failed.") from e

    try:
        return int(payload["sub"])
    except ValueError as e:
        raise UnauthenticatedError("Access token verification failed.") from e
