"""
Request authentication.

Callers present an API key in the X-API-Key header, or an access token as
`Authorization: Bearer <token>`. The key is hashed at this boundary; only
the hash is looked up. A key that fails to authenticate falls back to the
bearer token when one is present.
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.db.database import get_session
from cardkeep.models.failure import ForbiddenError, UnauthenticatedError
from cardkeep.models.user import User
from cardkeep.services.identity import IdentityResolver, hash_key


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer` header value."""
    scheme, _, token = (authorization or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_user(
    session: Annotated[AsyncSession, Depends(get_session)],
    x_api_key: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Dependency resolving the X-API-Key header or a bearer token to a user."""
    resolver = IdentityResolver(session)
    key = (x_api_key or "").strip()
    token = bearer_token(authorization)

    if key:
        try:
            return await resolver.authenticate_api_key(hash_key(key))
        except UnauthenticatedError:
            if token is None:
                raise

    if token is None:
        raise UnauthenticatedError("Missing X-API-Key header or bearer token.")
    return await resolver.authenticate_token(token)


async def managed_user(user: Annotated[User, Depends(current_user)]) -> User:
    """Dependency that only admits managed (automation) users."""
    if not user.managed:
        raise ForbiddenError("Only managed users may perform this operation.")
    return user


CurrentUser = Annotated[User, Depends(current_user)]
ManagedUser = Annotated[User, Depends(managed_user)]
