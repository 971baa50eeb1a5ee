"""
Card API endpoints.

Guild-scoped listing and lookup, plus card mutations reserved for managed
users.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.api.auth import CurrentUser, ManagedUser
from cardkeep.api.pagination import paginate
from cardkeep.api.schemas import CardDetailResponse, CardResponse, UserResponse
from cardkeep.config import MAX_NAME_LENGTH, settings
from cardkeep.db.database import get_session
from cardkeep.models.card import Visibility
from cardkeep.models.failure import ForbiddenError, HiddenCardError
from cardkeep.services.ledger import OwnershipLedger
from cardkeep.services.registry import CardRegistry, can_read

router = APIRouter(tags=["cards"])


class CardCreateRequest(BaseModel):
    """Request model for creating a card."""

    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    content: str
    category_name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    visibility: Visibility = Visibility.PRIVATE


class CardRevisionRequest(BaseModel):
    """Request model for revising a card."""

    content: str
    category_name: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        description="New name for an upgrade; omit to keep the current name",
    )


class VisibilityRequest(BaseModel):
    """Request model for changing a card's visibility."""

    visibility: Visibility


class PreviousRequest(BaseModel):
    """Request model for re-linking a card's predecessor."""

    previous_id: int | None = Field(
        ...,
        description="Card this card follows, or null to detach it",
    )


class OwnersResponse(BaseModel):
    """Response model for a card's owners."""

    card_id: int
    owners: list[UserResponse]


@router.get("/guilds/{guild_id}/cards", response_model=list[CardResponse])
async def list_guild_cards(
    guild_id: int,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_session)],
    query: str | None = None,
    page: int = 1,
    count: int = settings.page_limit,
) -> list[CardResponse]:
    """
    List the cards of a guild the caller may know about.

    With `query`, only names containing it are returned, best matches first.
    Hidden cards appear without their content.
    """
    views = await CardRegistry(session).list_visible_cards(guild_id, user, query)
    return [CardResponse.from_view(v) for v in paginate(views, page, count)]


@router.post(
    "/guilds/{guild_id}/cards",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_card(
    guild_id: int,
    request: CardCreateRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Create a card. Fails with 409 if the name is taken in the guild."""
    card = await CardRegistry(session).create_card(
        guild_id,
        request.name,
        request.content,
        category_name=request.category_name,
        visibility=request.visibility,
    )
    return CardResponse.from_card(card)


@router.get("/guilds/{guild_id}/cards/by-name/{name}", response_model=CardResponse)
async def get_card_by_name(
    guild_id: int,
    name: str,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Get the latest version of the card with this name."""
    card = await CardRegistry(session).resolve_latest(guild_id, name)
    owned = await OwnershipLedger(session).owns(card.id, user.id)

    if not can_read(card, user, owned):
        if card.visibility is Visibility.HIDDEN:
            raise HiddenCardError(card.name)
        raise ForbiddenError(f"The card {card.id} is private.")
    return CardResponse.from_card(card, owned=owned)


@router.get("/guilds/{guild_id}/cards/{card_id}", response_model=CardDetailResponse)
async def show_card(
    guild_id: int,
    card_id: int,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardDetailResponse:
    """
    Get a card with its upgrades and downgrade.

    Neighbours the caller may not read are left out.
    """
    history = await CardRegistry(session).view_card(guild_id, card_id, user)
    return CardDetailResponse.from_history(history)


@router.post(
    "/cards/{card_id}/revisions",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def revise_card(
    card_id: int,
    request: CardRevisionRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Insert a new version of a card."""
    card = await CardRegistry(session).revise_card(
        card_id,
        request.content,
        category_name=request.category_name,
        name=request.name,
    )
    return CardResponse.from_card(card)


@router.put("/cards/{card_id}/visibility", response_model=CardResponse)
async def set_card_visibility(
    card_id: int,
    request: VisibilityRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Change a card's visibility."""
    card = await CardRegistry(session).set_visibility(card_id, request.visibility)
    return CardResponse.from_card(card)


@router.put("/cards/{card_id}/previous", response_model=CardResponse)
async def set_card_previous(
    card_id: int,
    request: PreviousRequest,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Re-link a card's predecessor. Fails with 409 on a cycle."""
    card = await CardRegistry(session).set_previous(card_id, request.previous_id)
    return CardResponse.from_card(card)


@router.get("/cards/{card_id}/owners", response_model=OwnersResponse)
async def list_card_owners(
    card_id: int,
    _user: ManagedUser,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> OwnersResponse:
    """List the users currently owning a card."""
    owners = await OwnershipLedger(session).list_owners(card_id)
    return OwnersResponse(
        card_id=card_id,
        owners=[UserResponse.from_user(u) for u in sorted(owners, key=lambda u: u.id)],
    )
