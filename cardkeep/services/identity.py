"""
Identity Resolution Service.

Maps inbound credentials to users. Two independent credential kinds exist:
a Discord identity and an API key. Each binds to a user on its own; neither
knows about the other.

INVARIANTS:
1. One Discord id binds to exactly one user, and a user holds at most one
   Discord id
2. Each API key hash binds to exactly one user; a user may hold many
3. Raw API keys never reach this service, except when one is generated,
   and are never stored
4. A credential that collides with a different user is an AuthConflictError,
   including when a concurrent request wins the race for it
"""

import hashlib
import logging
import re
import secrets
import string

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.config import KEY_HASH_LENGTH, settings
from cardkeep.db.database import guard_storage
from cardkeep.db.operations import (
    create_user,
    get_api_auth,
    get_discord_auth,
    get_discord_auth_for_user,
    get_managed_user_by_name,
    get_user,
    insert_api_auth,
    insert_discord_auth,
    user_to_model,
)
from cardkeep.models.db import UserDB
from cardkeep.models.failure import (
    AuthConflictError,
    InvalidInputError,
    NotFoundError,
    UnauthenticatedError,
)
from cardkeep.models.user import AuthMethod, DiscordIdentity, User
from cardkeep.services.tokens import decode_access_token

logger = logging.getLogger(__name__)

KEY_ALPHABET = string.ascii_letters + string.digits

_KEY_HASH_PATTERN = re.compile(rf"[0-9a-f]{{{KEY_HASH_LENGTH}}}")


def generate_key(length: int | None = None) -> str:
    """Generate a new random alphanumeric API key."""
    length = length or settings.api_key_length
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


def hash_key(key: str) -> str:
    """Hash an API key to the hex SHA-256 digest stored in api_auth."""
    return hashlib.sha256(key.encode()).hexdigest()


def is_key_hash(value: str) -> bool:
    """Check that `value` has the shape of a stored key hash."""
    return _KEY_HASH_PATTERN.fullmatch(value) is not None


def _check_discord_id(discord_id: int) -> None:
    if discord_id <= 0:
        raise InvalidInputError("Discord ids must be positive.", detail=str(discord_id))


def _check_key_hash(key_hash: str) -> None:
    if not is_key_hash(key_hash):
        msg = f"API key hashes must be {KEY_HASH_LENGTH} lowercase hex characters."
        raise InvalidInputError(msg)


class IdentityResolver:
    """
    Resolves and binds credentials to users within one session.

    First sight of an unknown credential creates an unmanaged user for it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _require_user(self, user_id: int) -> UserDB:
        user = await get_user(self._session, user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def _rollback_conflict(self, message: str) -> AuthConflictError:
        """Abort the transaction after a lost race and describe the conflict."""
        await self._session.rollback()
        logger.warning("Credential conflict: %s", message)
        return AuthConflictError(message)

    @guard_storage
    async def resolve(self, credential: AuthMethod, display_name: str) -> User:
        """Resolve either credential kind to its user."""
        if isinstance(credential, DiscordIdentity):
            return await self.resolve_discord(credential.discord_id, credential.display_name)
        return await self.resolve_api_key(credential.key_hash, display_name)

    @guard_storage
    async def resolve_discord(self, discord_id: int, display_name: str) -> User:
        """
        Get the user bound to a Discord id, creating both on first sight.

        A stale display name on an existing user is refreshed.
        """
        _check_discord_id(discord_id)

        auth = await get_discord_auth(self._session, discord_id)
        if auth is not None:
            user = await self._require_user(auth.user_id)
            if user.display_name != display_name:
                logger.info(
                    "Updating stale display name for user %d: %r -> %r",
                    user.id,
                    user.display_name,
                    display_name,
                )
                user.display_name = display_name
                await self._session.flush()
            return user_to_model(user)

        try:
            user = await create_user(self._session, display_name)
            await insert_discord_auth(self._session, user.id, discord_id)
        except IntegrityError as e:
            msg = f"Discord id {discord_id} was bound by another request."
            raise await self._rollback_conflict(msg) from e

        logger.info("Created user %d for Discord id %d", user.id, discord_id)
        return user_to_model(user)

    @guard_storage
    async def resolve_api_key(self, key_hash: str, display_name: str) -> User:
        """Get the user bound to an API key hash, creating both on first sight."""
        _check_key_hash(key_hash)

        auth = await get_api_auth(self._session, key_hash)
        if auth is not None:
            return user_to_model(await self._require_user(auth.user_id))

        try:
            user = await create_user(self._session, display_name)
            await insert_api_auth(self._session, user.id, key_hash)
        except IntegrityError as e:
            raise await self._rollback_conflict("API key was bound by another request.") from e

        logger.info("Created user %d for a new API key", user.id)
        return user_to_model(user)

    @guard_storage
    async def authenticate_api_key(self, key_hash: str) -> User:
        """
        Get the user bound to an API key hash, without creating anything.

        Raises UnauthenticatedError if the hash is malformed or unknown.
        """
        if not is_key_hash(key_hash):
            raise UnauthenticatedError("Malformed API key.")

        auth = await get_api_auth(self._session, key_hash)
        if auth is None:
            raise UnauthenticatedError("API key does not match any user.")

        user = await get_user(self._session, auth.user_id)
        if user is None:
            raise UnauthenticatedError("API key does not match any user.")
        return user_to_model(user)

    @guard_storage
    async def authenticate_token(self, token: str) -> User:
        """
        Get the user an access token was issued for.

        Raises UnauthenticatedError if the token is invalid or its user is gone.
        """
        user = await get_user(self._session, decode_access_token(token))
        if user is None:
            raise UnauthenticatedError("Access token does not match any user.")
        return user_to_model(user)

    @guard_storage
    async def bind_discord(self, user_id: int, discord_id: int) -> User:
        """
        Bind a Discord id to an existing user.

        Binding the same pair twice is a no-op.
        """
        _check_discord_id(discord_id)
        user = await self._require_user(user_id)

        existing = await get_discord_auth(self._session, discord_id)
        if existing is not None:
            if existing.user_id == user_id:
                return user_to_model(user)
            logger.warning(
                "Discord id %d is bound to user %d, refusing user %d",
                discord_id,
                existing.user_id,
                user_id,
            )
            raise AuthConflictError(f"Discord id {discord_id} is bound to another user.")

        current = await get_discord_auth_for_user(self._session, user_id)
        if current is not None:
            logger.warning(
                "User %d already holds Discord id %d, refusing %d",
                user_id,
                current.discord_id,
                discord_id,
            )
            raise AuthConflictError(f"User {user_id} is already bound to a Discord identity.")

        try:
            await insert_discord_auth(self._session, user_id, discord_id)
        except IntegrityError as e:
            msg = f"Discord id {discord_id} was bound by another request."
            raise await self._rollback_conflict(msg) from e

        logger.info("Bound Discord id %d to user %d", discord_id, user_id)
        return user_to_model(user)

    @guard_storage
    async def bind_api_key(self, user_id: int, key_hash: str) -> User:
        """
        Bind an API key hash to an existing user.

        Binding the same pair twice is a no-op.
        """
        _check_key_hash(key_hash)
        user = await self._require_user(user_id)

        existing = await get_api_auth(self._session, key_hash)
        if existing is not None:
            if existing.user_id == user_id:
                return user_to_model(user)
            raise AuthConflictError("API key is bound to another user.")

        try:
            await insert_api_auth(self._session, user_id, key_hash)
        except IntegrityError as e:
            raise await self._rollback_conflict("API key was bound by another request.") from e

        logger.info("Bound new API key to user %d", user_id)
        return user_to_model(user)

    @guard_storage
    async def issue_api_key(self, display_name: str) -> tuple[User, str]:
        """
        Create an API key for the managed user named `display_name`.

        The managed user is created if it does not exist yet. Returns the
        user and the raw key; only the key's hash is stored.
        """
        user = await get_managed_user_by_name(self._session, display_name)
        if user is None:
            user = await create_user(self._session, display_name, managed=True)
            logger.info("Created managed user %d (%s)", user.id, display_name)

        key = generate_key()
        await self.bind_api_key(user.id, hash_key(key))
        return user_to_model(user), key

