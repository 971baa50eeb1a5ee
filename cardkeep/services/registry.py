"""
Card Registry Service.

Creates, revises and looks up cards, and decides what a viewer may see.

INVARIANTS:
1. At most one card row carries a given (guild, name) at any time
2. previous_id links form acyclic chains that never cross guilds
3. Rows are never deleted; a revision is a new row pointing at its
   predecessor, and a same-name revision moves the name onto the new row
4. Visibility is a free three-state flag: every transition is legal
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.config import ARCHIVE_SEPARATOR, MAX_NAME_LENGTH
from cardkeep.db.database import guard_storage
from cardkeep.db.operations import (
    card_to_model,
    get_card,
    get_card_by_name,
    get_guild_cards,
    get_owned_card_ids,
    get_previous_id,
    get_upgrades,
    insert_card,
)
from cardkeep.models.card import Card, CardHistory, CardView, Visibility
from cardkeep.models.db import CardDB
from cardkeep.models.failure import (
    CycleDetectedError,
    DuplicateNameError,
    ForbiddenError,
    HiddenCardError,
    InvalidInputError,
    NotFoundError,
)
from cardkeep.models.user import User
from cardkeep.services.card_search import rank_by_name

logger = logging.getLogger(__name__)


def archived_name(name: str, card_id: int) -> str:
    """
    Name a superseded card gives up its live name for.

    Live names cannot contain the separator, so archived names never collide
    with them, and the card id keeps them unique among themselves.
    """
    suffix = f"{ARCHIVE_SEPARATOR}{card_id}"
    return name[: MAX_NAME_LENGTH - len(suffix)] + suffix


def _check_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InvalidInputError("Card names cannot be empty.")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError(f"Card names are limited to {MAX_NAME_LENGTH} characters.")
    if ARCHIVE_SEPARATOR in name:
        raise InvalidInputError(f"Card names cannot contain `{ARCHIVE_SEPARATOR}`.", detail=name)
    return name


def is_archived(card: Card | CardDB) -> bool:
    """Whether `card` has been superseded by a same-name revision."""
    return card.name.endswith(f"{ARCHIVE_SEPARATOR}{card.id}")


def _check_guild(guild_id: int) -> None:
    if guild_id <= 0:
        raise InvalidInputError("Guild ids must be positive.", detail=str(guild_id))


def can_read(card: Card, viewer: User, owned: bool) -> bool:
    """Whether `viewer` may read the details of `card`."""
    return viewer.managed or owned or card.visibility.is_public()


def can_see(card: Card, viewer: User, owned: bool) -> bool:
    """Whether `viewer` may know that `card` exists."""
    return can_read(card, viewer, owned) or card.visibility is Visibility.HIDDEN


class CardRegistry:
    """Card operations within one session (one transaction)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _require_card(self, card_id: int) -> CardDB:
        card = await get_card(self._session, card_id)
        if card is None:
            raise NotFoundError("card", card_id)
        return card

    async def _duplicate(self, guild_id: int, name: str) -> DuplicateNameError:
        """Abort the transaction after a unique-name violation."""
        await self._session.rollback()
        logger.warning("Card name %r already taken in guild %d", name, guild_id)
        return DuplicateNameError(guild_id, name)

    async def _ensure_acyclic(self, card_id: int, previous_id: int) -> None:
        """
        Walk the predecessors of `previous_id` and reject the link if
        `card_id` is among them.
        """
        seen: set[int] = set()
        current: int | None = previous_id
        while current is not None:
            if current == card_id or current in seen:
                logger.warning("Rejected link %d -> %d: cycle", card_id, previous_id)
                raise CycleDetectedError(card_id, previous_id)
            seen.add(current)
            current = await get_previous_id(self._session, current)

    @guard_storage
    async def create_card(
        self,
        guild_id: int,
        name: str,
        content: str,
        category_name: str | None = None,
        visibility: Visibility = Visibility.PRIVATE,
    ) -> Card:
        """
        Create a card in a guild.

        Raises DuplicateNameError if the name is taken, including when a
        concurrent request takes it first.
        """
        _check_guild(guild_id)
        name = _check_name(name)

        if await get_card_by_name(self._session, guild_id, name) is not None:
            logger.warning("Card name %r already taken in guild %d", name, guild_id)
            raise DuplicateNameError(guild_id, name)

        try:
            card = await insert_card(
                self._session,
                guild_id=guild_id,
                name=name,
                content=content,
                category_name=category_name,
                visibility=visibility,
            )
        except IntegrityError as e:
            raise await self._duplicate(guild_id, name) from e

        logger.info("Created card %d (%r) in guild %d", card.id, name, guild_id)
        return card_to_model(card)

    @guard_storage
    async def get_card(self, card_id: int) -> Card:
        """Get a card by id. Raises NotFoundError if absent."""
        return card_to_model(await self._require_card(card_id))

    @guard_storage
    async def revise_card(
        self,
        card_id: int,
        content: str,
        category_name: str | None = None,
        name: str | None = None,
    ) -> Card:
        """
        Insert a new version of a card whose predecessor is `card_id`.

        Without `name` the revision keeps the predecessor's name, and the
        predecessor is renamed to its archived name so the revision is the
        only live row with that name. With a different `name` the revision
        is an upgrade and the predecessor keeps its name.

        A superseded card can only be upgraded. Revising one without a new
        `name` raises InvalidInputError.

        Category and visibility default to the predecessor's.
        """
        previous = await self._require_card(card_id)
        if name is None and is_archived(previous):
            raise InvalidInputError(
                f"Card {card_id} has been superseded. Revise the latest version instead."
            )

        new_name = _check_name(name) if name is not None else previous.name
        guild_id = previous.guild_id

        if new_name == previous.name:
            retired = archived_name(previous.name, previous.id)
            previous.name = retired
            try:
                await self._session.flush()
            except IntegrityError as e:
                raise await self._duplicate(guild_id, retired) from e
        elif await get_card_by_name(self._session, guild_id, new_name) is not None:
            logger.warning("Card name %r already taken in guild %d", new_name, guild_id)
            raise DuplicateNameError(guild_id, new_name)

        try:
            card = await insert_card(
                self._session,
                guild_id=guild_id,
                name=new_name,
                content=content,
                category_name=(
                    category_name if category_name is not None else previous.category_name
                ),
                visibility=Visibility(previous.visibility),
                previous_id=previous.id,
            )
        except IntegrityError as e:
            raise await self._duplicate(guild_id, new_name) from e

        logger.info("Revised card %d into %d (%r)", previous.id, card.id, new_name)
        return card_to_model(card)

    @guard_storage
    async def set_visibility(self, card_id: int, visibility: Visibility) -> Card:
        """Change a card's visibility. Every transition is allowed."""
        card = await self._require_card(card_id)
        if card.visibility != visibility.value:
            logger.info("Card %d visibility %s -> %s", card_id, card.visibility, visibility.value)
            card.visibility = visibility.value
            await self._session.flush()
        return card_to_model(card)

    @guard_storage
    async def set_previous(self, card_id: int, previous_id: int | None) -> Card:
        """
        Point a card at a new predecessor, or detach it with None.

        Raises CycleDetectedError if the card would become its own
        ancestor, InvalidInputError if the predecessor is in another guild.
        """
        card = await self._require_card(card_id)

        if previous_id is not None:
            previous = await self._require_card(previous_id)
            if previous.guild_id != card.guild_id:
                raise InvalidInputError("Cards can only follow cards of the same guild.")
            await self._ensure_acyclic(card_id, previous_id)

        if card.previous_id != previous_id:
            card.previous_id = previous_id
            await self._session.flush()
            logger.info("Card %d now follows %s", card_id, previous_id)
        return card_to_model(card)

    @guard_storage
    async def resolve_latest(self, guild_id: int, name: str) -> Card:
        """
        Get the newest card carrying `name` in a guild.

        Revisions take over their predecessor's name, so the row holding
        the name is always the head of its chain.
        """
        name = name.strip()
        card = await get_card_by_name(self._session, guild_id, name)
        if card is None:
            raise NotFoundError("card", f"`{name}` in guild {guild_id}")
        return card_to_model(card)

    @guard_storage
    async def card_history(self, card_id: int) -> CardHistory:
        """Get a card with its upgrades and its downgrade."""
        card = await self._require_card(card_id)
        upgrades = await get_upgrades(self._session, card_id)

        downgrade = None
        if card.previous_id is not None:
            previous = await get_card(self._session, card.previous_id)
            if previous is not None:
                downgrade = card_to_model(previous)

        return CardHistory(
            card=card_to_model(card),
            upgrades=[card_to_model(c) for c in upgrades],
            downgrade=downgrade,
        )

    @guard_storage
    async def list_cards(self, guild_id: int, query: str | None = None) -> list[Card]:
        """
        List the cards of a guild.

        With a query, only names containing it are returned, best matches first.
        """
        cards = [card_to_model(c) for c in await get_guild_cards(self._session, guild_id, query)]
        if query:
            return rank_by_name(cards, query)
        return cards

    @guard_storage
    async def list_visible_cards(
        self, guild_id: int, viewer: User, query: str | None = None
    ) -> list[CardView]:
        """
        List the cards of a guild that `viewer` may know about.

        Private cards the viewer does not own are left out; hidden ones are
        included but flagged.
        """
        cards = await self.list_cards(guild_id, query)
        owned = await get_owned_card_ids(self._session, viewer.id, [c.id for c in cards])

        views = []
        for card in cards:
            is_owned = card.id in owned
            if can_see(card, viewer, is_owned):
                views.append(
                    CardView(
                        card=card,
                        owned=is_owned,
                        hidden=not can_read(card, viewer, is_owned),
                    )
                )
        return views

    @guard_storage
    async def view_card(self, guild_id: int, card_id: int, viewer: User) -> CardHistory:
        """
        Get a card and its readable neighbours as `viewer` sees them.

        Raises HiddenCardError for a hidden card the viewer cannot read,
        ForbiddenError for a private one.
        """
        card = await self._require_card(card_id)
        if card.guild_id != guild_id:
            raise NotFoundError("card", card_id)

        history = await self.card_history(card_id)
        neighbours = [*history.upgrades]
        if history.downgrade is not None:
            neighbours.append(history.downgrade)
        owned = await get_owned_card_ids(
            self._session, viewer.id, [card_id, *(c.id for c in neighbours)]
        )

        model = history.card
        if not can_read(model, viewer, card_id in owned):
            if model.visibility is Visibility.HIDDEN:
                raise HiddenCardError(model.name)
            raise ForbiddenError(f"The card {card_id} is private.")

        downgrade = history.downgrade
        if downgrade is not None and not can_read(downgrade, viewer, downgrade.id in owned):
            downgrade = None

        return CardHistory(
            card=model,
            upgrades=[c for c in history.upgrades if can_read(c, viewer, c.id in owned)],
            downgrade=downgrade,
        )
