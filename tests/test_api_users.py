"""Tests for user API endpoints."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardkeep.db.database import get_session
from cardkeep.db.operations import insert_card
from cardkeep.main import app
from cardkeep.services.identity import IdentityResolver, hash_key
from cardkeep.services.tokens import issue_access_token

ALICE_KEY = "alice-key"


@pytest.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]):
    """Provide an async test client with overridden database session."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> dict:
    """A managed user, a regular user and two cards in different guilds."""
    async with session_factory() as session:
        resolver = IdentityResolver(session)
        _, bot_key = await resolver.issue_api_key("bot")
        alice = await resolver.resolve_api_key(hash_key(ALICE_KEY), "alice")
        first = await insert_card(session, 1, "Fireball", "boom")
        second = await insert_card(session, 2, "Ice Bolt", "brr")
        ids = {"alice": alice.id, "first": first.id, "second": second.id}
        await session.commit()

    return {
        **ids,
        "bot": {"X-API-Key": bot_key},
        "alice_headers": {"X-API-Key": ALICE_KEY},
    }


class TestResolveDiscord:
    async def test_creates_and_resolves(self, client: AsyncClient, seeded: dict) -> None:
        """The same Discord id resolves to the same user, with the name refreshed."""
        body = {"discord_id": "123456789012345678", "display_name": "carol"}
        first = await client.post("/users/discord", json=body, headers=seeded["bot"])
        body["display_name"] = "caroline"
        second = await client.post("/users/discord", json=body, headers=seeded["bot"])

        assert first.status_code == 200
        assert first.json()["discord_id"] == "123456789012345678"
        assert second.json()["user"]["id"] == first.json()["user"]["id"]
        assert second.json()["user"]["display_name"] == "caroline"

    async def test_requires_managed_user(self, client: AsyncClient, seeded: dict) -> None:
        """Regular users cannot resolve Discord identities."""
        response = await client.post(
            "/users/discord",
            json={"discord_id": "42", "display_name": "carol"},
            headers=seeded["alice_headers"],
        )

        assert response.status_code == 403

    async def test_rejects_non_positive_id(self, client: AsyncClient, seeded: dict) -> None:
        """Discord ids must be positive."""
        response = await client.post(
            "/users/discord",
            json={"discord_id": "0", "display_name": "carol"},
            headers=seeded["bot"],
        )

        assert response.status_code == 422


class TestInventory:
    async def test_claim_and_list(self, client: AsyncClient, seeded: dict) -> None:
        """Claimed cards show up in the owner's inventory."""
        alice = seeded["alice"]
        for card_id in (seeded["first"], seeded["second"]):
            response = await client.post(
                f"/users/{alice}/cards", json={"card_id": card_id}, headers=seeded["bot"]
            )
            assert response.status_code == 201
            assert response.json()["owned"] is True

        response = await client.get(f"/users/{alice}/cards", headers=seeded["alice_headers"])
        assert [c["id"] for c in response.json()] == [seeded["first"], seeded["second"]]

        response = await client.get(
            f"/users/{alice}/cards", params={"guild_id": 2}, headers=seeded["alice_headers"]
        )
        assert [c["id"] for c in response.json()] == [seeded["second"]]

    async def test_claim_twice(self, client: AsyncClient, seeded: dict) -> None:
        """Claiming an owned card is a no-op."""
        url = f"/users/{seeded['alice']}/cards"
        body = {"card_id": seeded["first"]}
        await client.post(url, json=body, headers=seeded["bot"])
        response = await client.post(url, json=body, headers=seeded["bot"])

        assert response.status_code == 201
        listing = await client.get(url, headers=seeded["bot"])
        assert len(listing.json()) == 1

    async def test_release(self, client: AsyncClient, seeded: dict) -> None:
        """Released cards leave the inventory."""
        url = f"/users/{seeded['alice']}/cards"
        await client.post(url, json={"card_id": seeded["first"]}, headers=seeded["bot"])

        response = await client.delete(f"{url}/{seeded['first']}", headers=seeded["bot"])

        assert response.status_code == 200
        assert response.json()["owned"] is False
        listing = await client.get(url, headers=seeded["alice_headers"])
        assert listing.json() == []

    async def test_release_never_claimed(self, client: AsyncClient, seeded: dict) -> None:
        """Releasing an unclaimed card is 404."""
        response = await client.delete(
            f"/users/{seeded['alice']}/cards/{seeded['first']}", headers=seeded["bot"]
        )

        assert response.status_code == 404
        assert response.json()["failure"]["kind"] == "not_found"

    async def test_claim_unknown_card(self, client: AsyncClient, seeded: dict) -> None:
        """Claiming a missing card is 404."""
        response = await client.post(
            f"/users/{seeded['alice']}/cards", json={"card_id": 999}, headers=seeded["bot"]
        )

        assert response.status_code == 404

    async def test_other_inventory_forbidden(self, client: AsyncClient, seeded: dict) -> None:
        """Regular users may only list their own inventory."""
        response = await client.get("/users/999/cards", headers=seeded["alice_headers"])

        assert response.status_code == 403


class TestAccessToken:
    async def discord_login(self, client: AsyncClient, seeded: dict) -> dict:
        response = await client.post(
            "/users/discord",
            json={"discord_id": "42", "display_name": "carol", "generate_token": True},
            headers=seeded["bot"],
        )
        assert response.status_code == 200
        return response.json()

    async def test_token_only_on_request(self, client: AsyncClient, seeded: dict) -> None:
        """No token is issued unless asked for."""
        response = await client.post(
            "/users/discord",
            json={"discord_id": "42", "display_name": "carol"},
            headers=seeded["bot"],
        )

        assert response.json()["access_token"] is None

    async def test_bearer_token_authenticates(self, client: AsyncClient, seeded: dict) -> None:
        """The issued token authenticates the Discord user."""
        data = await self.discord_login(client, seeded)
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        own = await client.get(f"/users/{data['user']['id']}/cards", headers=headers)
        other = await client.get(f"/users/{seeded['alice']}/cards", headers=headers)

        assert own.status_code == 200
        assert own.json() == []
        assert other.status_code == 403

    async def test_falls_back_from_bad_key(self, client: AsyncClient, seeded: dict) -> None:
        """A rejected API key falls back to the bearer token."""
        data = await self.discord_login(client, seeded)
        headers = {"X-API-Key": "nope", "Authorization": f"Bearer {data['access_token']}"}

        response = await client.get(f"/users/{data['user']['id']}/cards", headers=headers)

        assert response.status_code == 200

    async def test_expired_token(self, client: AsyncClient, seeded: dict) -> None:
        """An expired token is a 401."""
        token = issue_access_token(seeded["alice"], lifetime=timedelta(minutes=-1))

        response = await client.get(
            f"/users/{seeded['alice']}/cards", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["failure"]["kind"] == "unauthenticated"

    async def test_other_scheme_ignored(self, client: AsyncClient, seeded: dict) -> None:
        """Only the Bearer scheme is read from the Authorization header."""
        response = await client.get(
            f"/users/{seeded['alice']}/cards", headers={"Authorization": "Basic YWxpY2U6eA=="}
        )

        assert response.status_code == 401
