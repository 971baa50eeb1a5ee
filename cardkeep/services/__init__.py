"""
cardkeep services.

Business rules for identities, cards and ownership, layered over
cardkeep.db. Each service works inside the caller's session.
"""

from cardkeep.services.card_search import rank_by_name
from cardkeep.services.identity import IdentityResolver, generate_key, hash_key, is_key_hash
from cardkeep.services.ledger import OwnershipLedger
from cardkeep.services.registry import CardRegistry, archived_name, can_read, can_see, is_archived
from cardkeep.services.tokens import decode_access_token, issue_access_token

__all__ = [
    "CardRegistry",
    "IdentityResolver",
    "OwnershipLedger",
    "archived_name",
    "can_read",
    "can_see",
    "decode_access_token",
    "generate_key",
    "hash_key",
    "is_archived",
    "is_key_hash",
    "issue_access_token",
    "rank_by_name",
]
