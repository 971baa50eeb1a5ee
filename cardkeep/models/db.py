"""
SQLAlchemy ORM models for persistent storage.

Tables mirror the card registry schema: cards, users, ownership links and
the two authentication bindings.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cardkeep.config import KEY_HASH_LENGTH
from cardkeep.models.card import Visibility


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    A single card row.

    Revisions are new rows pointing at their predecessor via previous_id;
    rows are never deleted.
    """

    __tablename__ = "card"
    __table_args__ = (UniqueConstraint("guild_id", "name", name="uq_card_guild_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, index=True)
    name: Mapped[str] = mapped_column(String(255))
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    previous_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("card.id"), nullable=True, index=True
    )
    visibility: Mapped[str] = mapped_column(String(16), default=Visibility.PRIVATE.value)
    content: Mapped[str] = mapped_column(Text)
    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, guild_id={self.guild_id}, name={self.name})>"


class UserDB(Base):
    """A user, either a person or a managed automation account."""

    __tablename__ = "user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(String(255))
    # marker flag for automated users
    managed: Mapped[bool] = mapped_column(Boolean, default=False)
    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<UserDB(id={self.id}, display_name={self.display_name}, managed={self.managed})>"


class OwnershipDB(Base):
    """
    Ownership claim of a user on a card.

    One row per (card, owner); releasing a card flips owned instead of
    deleting the row.
    """

    __tablename__ = "ownership"
    __table_args__ = (UniqueConstraint("card_id", "owner_id", name="uq_ownership_card_owner"),)

    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("card.id"), primary_key=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.id"), primary_key=True, index=True
    )
    owned: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<OwnershipDB(card={self.card_id}, owner={self.owner_id}, owned={self.owned})>"


class DiscordAuthDB(Base):
    """Binds exactly one Discord identity to exactly one user."""

    __tablename__ = "discord_auth"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user.id"), primary_key=True)
    discord_id: Mapped[int] = mapped_column(BigInteger, unique=True)
    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<DiscordAuthDB(user_id={self.user_id}, discord_id={self.discord_id})>"


class ApiAuthDB(Base):
    """An API key hash belonging to a user. The raw key is never stored."""

    __tablename__ = "api_auth"

    hash: Mapped[str] = mapped_column(String(KEY_HASH_LENGTH), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user.id"), index=True)
    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<ApiAuthDB(user_id={self.user_id}, hash={self.hash[:8]}...)>"
