"""
Response models shared between routers.

Guild and Discord ids are 64-bit snowflakes, larger than JavaScript can
represent exactly, so they are written to JSON as strings. Numeric strings
and integers are both accepted on input.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer

from cardkeep.models.card import Card, CardHistory, CardView, Visibility
from cardkeep.models.user import User

Snowflake = Annotated[
    int,
    Field(gt=0),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


class CardResponse(BaseModel):
    """A card. content is withheld when hidden is true."""

    id: int
    guild_id: Snowflake
    name: str
    category_name: str | None = None
    visibility: Visibility
    content: str | None = None
    previous_id: int | None = None
    hidden: bool = False
    owned: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_card(
        cls, card: Card, hidden: bool = False, owned: bool | None = None
    ) -> "CardResponse":
        return cls(
            id=card.id,
            guild_id=card.guild_id,
            name=card.name,
            category_name=card.category_name,
            visibility=card.visibility,
            content=None if hidden else card.content,
            previous_id=card.previous_id,
            hidden=hidden,
            owned=owned,
            created_at=card.inserted_at,
            updated_at=card.updated_at,
        )

    @classmethod
    def from_view(cls, view: CardView) -> "CardResponse":
        return cls.from_card(view.card, hidden=view.hidden, owned=view.owned)


class CardDetailResponse(CardResponse):
    """A card with the neighbours in its version chain the viewer may read."""

    upgrades: list[CardResponse] = Field(default_factory=list)
    downgrade: CardResponse | None = None

    @classmethod
    def from_history(cls, history: CardHistory) -> "CardDetailResponse":
        base = CardResponse.from_card(history.card)
        return cls(
            **base.model_dump(),
            upgrades=[CardResponse.from_card(c) for c in history.upgrades],
            downgrade=(
                CardResponse.from_card(history.downgrade)
                if history.downgrade is not None
                else None
            ),
        )


class UserResponse(BaseModel):
    """A user."""

    id: int
    display_name: str
    managed: bool = False

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, display_name=user.display_name, managed=user.managed)
