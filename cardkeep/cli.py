"""
Operator command line.

    cardkeep create-api-key [--name NAME]
    cardkeep init-db [--reset]
    cardkeep migrate-visibility
    cardkeep serve [--host HOST] [--port PORT]
"""

import argparse
import asyncio
import logging

import uvicorn

from cardkeep.config import settings
from cardkeep.db.database import async_session_factory, drop_db, init_db
from cardkeep.jobs.migrate_visibility import run_migration
from cardkeep.models.failure import KnownError
from cardkeep.services.identity import IdentityResolver

logger = logging.getLogger(__name__)


async def create_api_key(name: str) -> str:
    """Issue a key for the managed user `name` and return the raw key."""
    async with async_session_factory() as session:
        user, key = await IdentityResolver(session).issue_api_key(name)
        await session.commit()

    logger.info("Issued API key for managed user %d (%s)", user.id, user.display_name)
    return key


async def reset_db(drop: bool) -> None:
    if drop:
        logger.warning("Dropping all tables")
        await drop_db()
    await init_db()
    logger.info("Database tables created")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cardkeep", description="Card registry administration")
    sub = parser.add_subparsers(dest="cmd", required=True)

    key = sub.add_parser("create-api-key", help="Issue an API key for a managed user")
    key.add_argument(
        "--name",
        default=settings.default_managed_name,
        help=f"Managed user name (default: {settings.default_managed_name})",
    )

    init = sub.add_parser("init-db", help="Create database tables")
    init.add_argument("--reset", action="store_true", help="Drop existing tables first")

    sub.add_parser("migrate-visibility", help="Convert legacy numeric card visibility")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.cmd == "create-api-key":
            print(asyncio.run(create_api_key(args.name)))
        elif args.cmd == "init-db":
            asyncio.run(reset_db(args.reset))
        elif args.cmd == "migrate-visibility":
            asyncio.run(run_migration())
        elif args.cmd == "serve":
            uvicorn.run("cardkeep.main:app", host=args.host, port=args.port)
    except KnownError as e:
        logger.error("%s: %s", e.kind.value, e.message)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
