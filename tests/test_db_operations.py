"""Tests for database CRUD operations."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.db.operations import (
    card_to_model,
    create_user,
    get_api_auth,
    get_card_by_name,
    get_card_owners,
    get_discord_auth,
    get_discord_auth_for_user,
    get_guild_cards,
    get_legacy_visibility_cards,
    get_managed_user_by_name,
    get_owned_card_ids,
    get_owned_cards,
    get_ownership,
    get_previous_id,
    get_upgrades,
    insert_api_auth,
    insert_card,
    insert_discord_auth,
    upsert_ownership,
    user_to_model,
)
from cardkeep.models.card import Visibility
from cardkeep.models.db import CardDB


class TestCardOperations:
    async def test_insert_card(self, session: AsyncSession) -> None:
        """Inserting a card assigns an id and stores the visibility by name."""
        card = await insert_card(session, 1, "Fireball", "boom", visibility=Visibility.PUBLIC)

        assert card.id is not None
        assert card.visibility == "public"

    async def test_insert_duplicate_name(self, session: AsyncSession) -> None:
        """A taken (guild, name) raises IntegrityError."""
        await insert_card(session, 1, "Fireball", "a")

        with pytest.raises(IntegrityError):
            await insert_card(session, 1, "Fireball", "b")

    async def test_get_card_by_name(self, session: AsyncSession) -> None:
        """Lookup by name is scoped to the guild."""
        await insert_card(session, 1, "Fireball", "a")

        assert await get_card_by_name(session, 1, "Fireball") is not None
        assert await get_card_by_name(session, 2, "Fireball") is None

    async def test_get_previous_id(self, session: AsyncSession) -> None:
        """Returns only the predecessor id."""
        first = await insert_card(session, 1, "A", "a")
        second = await insert_card(session, 1, "B", "b", previous_id=first.id)

        assert await get_previous_id(session, second.id) == first.id
        assert await get_previous_id(session, first.id) is None

    async def test_get_upgrades(self, session: AsyncSession) -> None:
        """Upgrades are all cards pointing at the given one, oldest first."""
        base = await insert_card(session, 1, "A", "a")
        b = await insert_card(session, 1, "B", "b", previous_id=base.id)
        c = await insert_card(session, 1, "C", "c", previous_id=base.id)

        upgrades = await get_upgrades(session, base.id)

        assert [u.id for u in upgrades] == [b.id, c.id]

    async def test_get_guild_cards_search(self, session: AsyncSession) -> None:
        """Search matches substrings and treats wildcards literally."""
        await insert_card(session, 1, "Fireball", "a")
        await insert_card(session, 1, "Ice Bolt", "b")
        await insert_card(session, 1, "100% Fire", "c")
        await insert_card(session, 2, "Fire Wall", "d")

        names = [c.name for c in await get_guild_cards(session, 1, "Fire")]
        assert names == ["Fireball", "100% Fire"]

        percent = [c.name for c in await get_guild_cards(session, 1, "%")]
        assert percent == ["100% Fire"]

    async def test_get_legacy_visibility_cards(self, session: AsyncSession) -> None:
        """Only rows with a value outside the named states are returned."""
        await insert_card(session, 1, "Named", "a")
        session.add(CardDB(guild_id=1, name="Legacy", content="b", visibility="2"))
        await session.flush()

        legacy = await get_legacy_visibility_cards(session)

        assert [c.name for c in legacy] == ["Legacy"]

    async def test_card_to_model(self, session: AsyncSession) -> None:
        """Conversion maps the stored visibility onto the enum."""
        card = await insert_card(session, 1, "A", "a", category_name="spells")

        model = card_to_model(card)

        assert model.visibility is Visibility.PRIVATE
        assert model.category_name == "spells"
        assert model.guild_id == 1


class TestUserOperations:
    async def test_create_user(self, session: AsyncSession) -> None:
        """Users are unmanaged unless asked otherwise."""
        user = await create_user(session, "alice")

        assert user.id is not None
        assert user_to_model(user).managed is False

    async def test_get_managed_user_by_name(self, session: AsyncSession) -> None:
        """Only managed users are found by name."""
        await create_user(session, "bot")
        managed = await create_user(session, "bot", managed=True)

        found = await get_managed_user_by_name(session, "bot")

        assert found is not None
        assert found.id == managed.id


class TestCredentialOperations:
    async def test_discord_auth(self, session: AsyncSession) -> None:
        """A Discord binding is found from either side."""
        user = await create_user(session, "alice")
        await insert_discord_auth(session, user.id, 42)

        assert (await get_discord_auth(session, 42)).user_id == user.id
        assert (await get_discord_auth_for_user(session, user.id)).discord_id == 42
        assert await get_discord_auth(session, 43) is None

    async def test_api_auth(self, session: AsyncSession) -> None:
        """An API key binding is found by hash."""
        user = await create_user(session, "alice")
        await insert_api_auth(session, user.id, "a" * 64)

        assert (await get_api_auth(session, "a" * 64)).user_id == user.id
        assert await get_api_auth(session, "b" * 64) is None


class TestOwnershipOperations:
    async def test_upsert_toggles_single_row(self, session: AsyncSession) -> None:
        """Repeated upserts update the same row."""
        card = await insert_card(session, 1, "A", "a")
        user = await create_user(session, "alice")

        await upsert_ownership(session, card.id, user.id, owned=True)
        await upsert_ownership(session, card.id, user.id, owned=False)
        await upsert_ownership(session, card.id, user.id, owned=True)

        ownership = await get_ownership(session, card.id, user.id)
        assert ownership is not None
        assert ownership.owned is True

    async def test_owners_and_owned_cards(self, session: AsyncSession) -> None:
        """Released rows do not count as ownership."""
        a = await insert_card(session, 1, "A", "a")
        b = await insert_card(session, 2, "B", "b")
        alice = await create_user(session, "alice")
        bob = await create_user(session, "bob")

        await upsert_ownership(session, a.id, alice.id, owned=True)
        await upsert_ownership(session, b.id, alice.id, owned=True)
        await upsert_ownership(session, a.id, bob.id, owned=False)

        assert [u.id for u in await get_card_owners(session, a.id)] == [alice.id]
        assert [c.id for c in await get_owned_cards(session, alice.id)] == [a.id, b.id]
        assert [c.id for c in await get_owned_cards(session, alice.id, guild_id=2)] == [b.id]
        assert await get_owned_card_ids(session, bob.id, [a.id, b.id]) == set()
        assert await get_owned_card_ids(session, alice.id, [b.id]) == {b.id}
