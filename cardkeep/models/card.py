from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Integer codes used before visibility was stored by name
LEGACY_VISIBILITY_CODES: dict[int, str] = {
    0: "private",
    1: "hidden",
    2: "public",
}


class Visibility(str, Enum):
    """
    How a card appears to users that do not own it.

    Owners always see everything. The three states form a free flag:
    any state may move to any other.
    """

    # Neither the card nor its existence is visible to non-owners
    PRIVATE = "private"
    # Non-owners may see that the card exists, but not its details
    HIDDEN = "hidden"
    # Everyone may see the card and its details
    PUBLIC = "public"

    @classmethod
    def from_legacy_code(cls, code: int) -> "Visibility":
        """Map a legacy integer code; unknown codes fall back to PRIVATE."""
        return cls(LEGACY_VISIBILITY_CODES.get(code, cls.PRIVATE.value))

    def is_public(self) -> bool:
        return self is Visibility.PUBLIC


@dataclass(frozen=True, slots=True)
class Card:
    """
    A card as seen by the rest of the application.

    Attributes:
        id: Row id of this card version
        guild_id: Guild (tenant) the card is scoped to
        name: Card name, unique within the guild
        content: Card body in Markdown
        visibility: Exposure level for non-owners
        category_name: Optional grouping label
        previous_id: Card this one was revised or upgraded from
    """

    id: int
    guild_id: int
    name: str
    content: str
    visibility: Visibility = Visibility.PRIVATE
    category_name: str | None = None
    previous_id: int | None = None
    inserted_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CardHistory:
    """A card with its neighbours in the version chain."""

    card: Card
    upgrades: list[Card] = field(default_factory=list)
    downgrade: Card | None = None


@dataclass(frozen=True, slots=True)
class CardView:
    """
    A card as one particular viewer may see it.

    hidden is True when the viewer may know the card exists but not read it.
    """

    card: Card
    owned: bool = False
    hidden: bool = False
