"""
User and credential models.

A user can be reached through any number of independent credentials.
Each credential kind is its own type; they share nothing but the user
they resolve to.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class User:
    """A registered user. Managed users are automation accounts."""

    id: int
    display_name: str
    managed: bool = False


@dataclass(frozen=True, slots=True)
class DiscordIdentity:
    """A Discord account, identified by its snowflake."""

    discord_id: int
    display_name: str


@dataclass(frozen=True, slots=True)
class ApiKeyCredential:
    """
    An API key, already hashed.

    Only the hex SHA-256 digest travels past the HTTP boundary.
    """

    key_hash: str


AuthMethod = DiscordIdentity | ApiKeyCredential
