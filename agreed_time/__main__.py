"""Command line entry point.

Usage:
    python -m agreed_time migrate    Apply pending database migrations
    python -m agreed_time serve      Run the API server (default)
"""

import argparse
import asyncio
import logging

from agreed_time import db
from agreed_time.config import get_settings
from agreed_time.db.migrations import get_migration_history

logger = logging.getLogger("agreed_time.cli")


async def _migrate() -> None:
    # init_pool runs pending migrations before returning
    await db.init_pool()
    try:
        for entry in await get_migration_history():
            logger.info("  %03d %s (%s)", entry["version"], entry["description"], entry["applied_at"])
    finally:
        await db.close_pool()


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )
    parser = argparse.ArgumentParser(prog="agreed_time", description="Meeting scheduling API")
    parser.add_argument("command", nargs="?", choices=["migrate", "serve"], default="serve")
    args = parser.parse_args(argv)

    if args.command == "migrate":
        logger.info("Running database migrations...")
        asyncio.run(_migrate())
        logger.info("Database migrations applied successfully")
        return

    import uvicorn

    server = get_settings().server
    logger.info("Starting server on %s", server.addr)
    uvicorn.run("agreed_time.main:app", host=server.host, port=server.port)


if __name__ == "__main__":
    main()
