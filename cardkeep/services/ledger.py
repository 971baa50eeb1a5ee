"""
Ownership Ledger Service.

Records which users own which cards. A (card, user) pair has at most one
row; claiming and releasing flip its owned flag instead of adding or
removing rows.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.db.database import guard_storage
from cardkeep.db.operations import (
    card_to_model,
    get_card,
    get_card_owners,
    get_owned_cards,
    get_ownership,
    get_user,
    upsert_ownership,
    user_to_model,
)
from cardkeep.models.card import Card
from cardkeep.models.failure import NotFoundError
from cardkeep.models.user import User

logger = logging.getLogger(__name__)


class OwnershipLedger:
    """Ownership operations within one session (one transaction)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _require_card(self, card_id: int) -> Card:
        card = await get_card(self._session, card_id)
        if card is None:
            raise NotFoundError("card", card_id)
        return card_to_model(card)

    async def _require_user(self, user_id: int) -> User:
        user = await get_user(self._session, user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user_to_model(user)

    @guard_storage
    async def claim(self, card_id: int, user_id: int) -> Card:
        """
        Mark `user_id` as owning `card_id`.

        Idempotent: claiming an owned card changes nothing.
        """
        card = await self._require_card(card_id)
        await self._require_user(user_id)

        await upsert_ownership(self._session, card_id, user_id, owned=True)
        logger.info("User %d claimed card %d", user_id, card_id)
        return card

    @guard_storage
    async def release(self, card_id: int, user_id: int) -> Card:
        """
        Mark `user_id` as no longer owning `card_id`.

        Raises NotFoundError if the pair was never claimed.
        """
        card = await self._require_card(card_id)

        ownership = await get_ownership(self._session, card_id, user_id)
        if ownership is None:
            raise NotFoundError("ownership", f"of card {card_id} by user {user_id}")

        if ownership.owned:
            ownership.owned = False
            await self._session.flush()
            logger.info("User %d released card %d", user_id, card_id)
        return card

    @guard_storage
    async def owns(self, card_id: int, user_id: int) -> bool:
        """Whether `user_id` currently owns `card_id`."""
        ownership = await get_ownership(self._session, card_id, user_id)
        return ownership is not None and ownership.owned

    @guard_storage
    async def list_owners(self, card_id: int) -> set[User]:
        """The users currently owning a card."""
        await self._require_card(card_id)
        return {user_to_model(u) for u in await get_card_owners(self._session, card_id)}

    @guard_storage
    async def list_inventory(self, user_id: int, guild_id: int | None = None) -> list[Card]:
        """The cards a user currently owns, optionally within one guild."""
        await self._require_user(user_id)
        return [card_to_model(c) for c in await get_owned_cards(self._session, user_id, guild_id)]
