"""
User API endpoints.

Discord identity resolution for the bot, and per-user card inventories.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.api.auth import CurrentUser, ManagedUser
from cardkeep.api.pagination import paginate
from cardkeep.api.schemas import CardResponse, Snowflake, UserResponse
from cardkeep.config import settings
from cardkeep.db.database import get_session
from cardkeep.models.failure import ForbiddenError
from cardkeep.services.identity import IdentityResolver
from cardkeep.services.ledger import OwnershipLedger
from cardkeep.services.tokens import issue_access_token

router = APIRouter(prefix="/users", tags=["users"])


class DiscordUserRequest(BaseModel):
    """Request model for resolving a Discord user."""

    discord_id: Snowflake
    display_name: str = Field(..., min_length=1, max_length=255)
    generate_token: bool = False


class DiscordUserResponse(BaseModel):
    """Response model for a resolved Discord user."""

    user: UserResponse
    discord_id: Snowflake
    access_token: str | None = None


class ClaimRequest(BaseModel):
    """Request model for adding a card to a user's inventory."""

    card_id: int


@router.post("/discord", response_model=DiscordUserResponse)
async def resolve_discord_user(
    request: DiscordUserRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DiscordUserResponse:
    """
    Resolve a Discord user on behalf of the bot.

    Creates the user on first sight and refreshes a stale display name.
    With `generate_token`, also returns a short-lived access token the user
    can present as a bearer token.
    """
    user = await IdentityResolver(session).resolve_discord(
        request.discord_id, request.display_name
    )
    token = issue_access_token(user.id) if request.generate_token else None
    return DiscordUserResponse(
        user=UserResponse.from_user(user), discord_id=request.discord_id, access_token=token
    )


@router.get("/{user_id}/cards", response_model=list[CardResponse])
async def list_user_cards(
    user_id: int,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_session)],
    guild_id: int | None = None,
    page: int = 1,
    count: int = settings.page_limit,
) -> list[CardResponse]:
    """
    List the cards a user owns.

    Users may list their own inventory; managed users may list anyone's.
    """
    if user.id != user_id and not user.managed:
        raise ForbiddenError("You may only list your own cards.")

    cards = await OwnershipLedger(session).list_inventory(user_id, guild_id)
    return [CardResponse.from_card(c, owned=True) for c in paginate(cards, page, count)]


@router.post(
    "/{user_id}/cards",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def claim_card(
    user_id: int,
    request: ClaimRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Add a card to a user's inventory. Claiming an owned card is a no-op."""
    card = await OwnershipLedger(session).claim(request.card_id, user_id)
    return CardResponse.from_card(card, owned=True)


@router.delete("/{user_id}/cards/{card_id}", response_model=CardResponse)
async def release_card(
    user_id: int,
    card_id: int,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Remove a card from a user's inventory. 404 if it was never claimed."""
    card = await OwnershipLedger(session).release(card_id, user_id)
    return CardResponse.from_card(card, owned=False)
