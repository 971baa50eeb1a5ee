"""
Rewrite legacy numeric card visibility to named states.

Older databases stored visibility as the integer codes 0, 1 and 2. Rows still
holding such a code (or anything else unrecognised) are rewritten in place;
unknown values become private. Running the job twice changes nothing.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.db.database import async_session_factory
from cardkeep.db.operations import get_legacy_visibility_cards
from cardkeep.models.card import Visibility

logger = logging.getLogger(__name__)


def parse_legacy_visibility(raw: str | int | None) -> Visibility:
    """Map a stored legacy value to a Visibility. Non-numeric values are private."""
    try:
        code = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return Visibility.PRIVATE
    return Visibility.from_legacy_code(code)


async def migrate_legacy_visibility(session: AsyncSession) -> int:
    """
    Convert legacy visibility values within the caller's transaction.

    Returns:
        Number of cards rewritten
    """
    cards = await get_legacy_visibility_cards(session)
    for card in cards:
        visibility = parse_legacy_visibility(card.visibility)
        logger.debug("Card %d: %r -> %s", card.id, card.visibility, visibility.value)
        card.visibility = visibility.value

    await session.flush()
    return len(cards)


async def run_migration() -> int:
    """Run the conversion in its own transaction."""
    logger.info("Converting legacy card visibility...")

    async with async_session_factory() as session:
        count = await migrate_legacy_visibility(session)
        await session.commit()

    logger.info("Converted %d cards", count)
    return count


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_migration())


if __name__ == "__main__":
    main()
