"""
Database CRUD operations.

Provides async functions for reading and writing cards, users, credential
bindings and ownership rows. These functions only talk to the database;
the invariants built on top of them live in cardkeep.services.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.models.card import Card, Visibility
from cardkeep.models.db import ApiAuthDB, CardDB, DiscordAuthDB, OwnershipDB, UserDB
from cardkeep.models.user import User

# --- Card Operations ---


async def get_card(session: AsyncSession, card_id: int) -> CardDB | None:
    """Get a card row by id."""
    return await session.get(CardDB, card_id)


async def get_card_by_name(session: AsyncSession, guild_id: int, name: str) -> CardDB | None:
    """Get the card carrying `name` in a guild."""
    result = await session.execute(
        select(CardDB).where(
            CardDB.guild_id == guild_id,
            CardDB.name == name,
        )
    )
    return result.scalar_one_or_none()


async def get_previous_id(session: AsyncSession, card_id: int) -> int | None:
    """Get only the predecessor id of a card, without loading the row."""
    result = await session.execute(select(CardDB.previous_id).where(CardDB.id == card_id))
    return result.scalar_one_or_none()


async def insert_card(
    session: AsyncSession,
    guild_id: int,
    name: str,
    content: str,
    category_name: str | None = None,
    visibility: Visibility = Visibility.PRIVATE,
    previous_id: int | None = None,
) -> CardDB:
    """
    Insert a new card row.

    Raises IntegrityError if (guild_id, name) is taken.
    """
    card = CardDB(
        guild_id=guild_id,
        name=name,
        category_name=category_name,
        previous_id=previous_id,
        visibility=visibility.value,
        content=content,
    )
    session.add(card)
    await session.flush()
    return card


async def get_upgrades(session: AsyncSession, card_id: int) -> list[CardDB]:
    """Get every card whose predecessor is `card_id`, oldest first."""
    result = await session.execute(
        select(CardDB).where(CardDB.previous_id == card_id).order_by(CardDB.id)
    )
    return list(result.scalars().all())


async def get_guild_cards(
    session: AsyncSession, guild_id: int, search: str | None = None
) -> list[CardDB]:
    """Get all cards in a guild, optionally those whose name contains `search`."""
    stmt = select(CardDB).where(CardDB.guild_id == guild_id)
    if search:
        stmt = stmt.where(CardDB.name.contains(search, autoescape=True))
    result = await session.execute(stmt.order_by(CardDB.id))
    return list(result.scalars().all())


async def get_legacy_visibility_cards(session: AsyncSession) -> list[CardDB]:
    """Get every card whose visibility is not one of the named states."""
    named = [v.value for v in Visibility]
    result = await session.execute(
        select(CardDB).where(CardDB.visibility.not_in(named)).order_by(CardDB.id)
    )
    return list(result.scalars().all())


def card_to_model(card: CardDB) -> Card:
    """Convert a database card to a domain model."""
    return Card(
        id=card.id,
        guild_id=card.guild_id,
        name=card.name,
        content=card.content,
        visibility=Visibility(card.visibility),
        category_name=card.category_name,
        previous_id=card.previous_id,
        inserted_at=card.inserted_at,
        updated_at=card.updated_at,
    )


# --- User Operations ---


async def get_user(session: AsyncSession, user_id: int) -> UserDB | None:
    """Get a user by id."""
    return await session.get(UserDB, user_id)


async def create_user(session: AsyncSession, display_name: str, managed: bool = False) -> UserDB:
    """Create a new user."""
    user = UserDB(display_name=display_name, managed=managed)
    session.add(user)
    await session.flush()
    return user


async def get_managed_user_by_name(session: AsyncSession, display_name: str) -> UserDB | None:
    """Get the first managed user with this display name."""
    result = await session.execute(
        select(UserDB)
        .where(UserDB.display_name == display_name, UserDB.managed.is_(True))
        .order_by(UserDB.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


def user_to_model(user: UserDB) -> User:
    """Convert a database user to a domain model."""
    return User(id=user.id, display_name=user.display_name, managed=user.managed)


# --- Credential Operations ---


async def get_discord_auth(session: AsyncSession, discord_id: int) -> DiscordAuthDB | None:
    """Get the binding for a Discord id."""
    result = await session.execute(
        select(DiscordAuthDB).where(DiscordAuthDB.discord_id == discord_id)
    )
    return result.scalar_one_or_none()


async def get_discord_auth_for_user(session: AsyncSession, user_id: int) -> DiscordAuthDB | None:
    """Get the Discord binding held by a user, if any."""
    return await session.get(DiscordAuthDB, user_id)


async def insert_discord_auth(
    session: AsyncSession, user_id: int, discord_id: int
) -> DiscordAuthDB:
    """
    Bind a Discord id to a user.

    Raises IntegrityError if either side is already bound.
    """
    auth = DiscordAuthDB(user_id=user_id, discord_id=discord_id)
    session.add(auth)
    await session.flush()
    return auth


async def get_api_auth(session: AsyncSession, key_hash: str) -> ApiAuthDB | None:
    """Get the binding for an API key hash."""
    return await session.get(ApiAuthDB, key_hash)


async def insert_api_auth(session: AsyncSession, user_id: int, key_hash: str) -> ApiAuthDB:
    """
    Bind an API key hash to a user.

    Raises IntegrityError if the hash is already bound.
    """
    auth = ApiAuthDB(user_id=user_id, hash=key_hash)
    session.add(auth)
    await session.flush()
    return auth


# --- Ownership Operations ---


# Backends allowed by Settings.database_url, keyed by dialect name
_UPSERT_INSERTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dialect_insert(session: AsyncSession) -> Any:
    """Pick the INSERT construct that supports ON CONFLICT for this backend."""
    return _UPSERT_INSERTS[session.get_bind().dialect.name]


async def upsert_ownership(
    session: AsyncSession, card_id: int, owner_id: int, owned: bool
) -> None:
    """
    Insert or update the ownership row of (card_id, owner_id) in one statement.

    Concurrent upserts on the same pair converge on a single row.
    """
    insert = _dialect_insert(session)
    stmt = insert(OwnershipDB).values(card_id=card_id, owner_id=owner_id, owned=owned)
    stmt = stmt.on_conflict_do_update(
        index_elements=[OwnershipDB.card_id, OwnershipDB.owner_id],
        set_={"owned": owned},
    )
    await session.execute(stmt)


async def get_ownership(session: AsyncSession, card_id: int, owner_id: int) -> OwnershipDB | None:
    """Get the ownership row of (card_id, owner_id), refreshed from the database."""
    result = await session.execute(
        select(OwnershipDB)
        .where(OwnershipDB.card_id == card_id, OwnershipDB.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_card_owners(session: AsyncSession, card_id: int) -> list[UserDB]:
    """Get the users currently owning a card."""
    result = await session.execute(
        select(UserDB)
        .join(OwnershipDB, OwnershipDB.owner_id == UserDB.id)
        .where(OwnershipDB.card_id == card_id, OwnershipDB.owned.is_(True))
        .order_by(UserDB.id)
    )
    return list(result.scalars().all())


async def get_owned_cards(
    session: AsyncSession, owner_id: int, guild_id: int | None = None
) -> list[CardDB]:
    """Get the cards a user currently owns, optionally within one guild."""
    stmt = (
        select(CardDB)
        .join(OwnershipDB, OwnershipDB.card_id == CardDB.id)
        .where(OwnershipDB.owner_id == owner_id, OwnershipDB.owned.is_(True))
    )
    if guild_id is not None:
        stmt = stmt.where(CardDB.guild_id == guild_id)
    result = await session.execute(stmt.order_by(CardDB.id))
    return list(result.scalars().all())


async def get_owned_card_ids(session: AsyncSession, owner_id: int, card_ids: list[int]) -> set[int]:
    """Of the given cards, the ids that `owner_id` currently owns."""
    if not card_ids:
        return set()
    result = await session.execute(
        select(OwnershipDB.card_id).where(
            OwnershipDB.owner_id == owner_id,
            OwnershipDB.owned.is_(True),
            OwnershipDB.card_id.in_(card_ids),
        )
    )
    return set(result.scalars().all())
