from cardkeep.db.database import get_session, guard_storage, init_db
from cardkeep.db.operations import (
    card_to_model,
    create_user,
    get_api_auth,
    get_card,
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
    get_user,
    insert_api_auth,
    insert_card,
    insert_discord_auth,
    upsert_ownership,
    user_to_model,
)

__all__ = [
    "card_to_model",
    "create_user",
    "get_api_auth",
    "get_card",
    "get_card_by_name",
    "get_card_owners",
    "get_discord_auth",
    "get_discord_auth_for_user",
    "get_guild_cards",
    "get_legacy_visibility_cards",
    "get_managed_user_by_name",
    "get_owned_card_ids",
    "get_owned_cards",
    "get_ownership",
    "get_previous_id",
    "get_session",
    "get_upgrades",
    "get_user",
    "guard_storage",
    "init_db",
    "insert_api_auth",
    "insert_card",
    "insert_discord_auth",
    "upsert_ownership",
    "user_to_model",
]
