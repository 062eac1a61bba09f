"""Schema migrations.

Migrations are versioned SQL files (`NNN_description.sql`) in this directory,
applied in version order and recorded in `schema_migrations`.
"""

import logging
from pathlib import Path
from typing import Any

from agreed_time.db.core import _get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    description TEXT
);
"""


async def get_current_version() -> int:
    """Get the current migration version from the database."""
    async with _get_connection() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        row = await cur.fetchone()
        return int(row[0]) if row and row[0] else 0


async def apply_migration(version: int, sql: str, description: str = "") -> bool:
    """Apply a single migration inside one transaction.

    Returns True if the migration was applied, False if it already was.
    """
    current = await get_current_version()
    if version <= current:
        logger.debug("Migration %d already applied", version)
        return False

    async with _get_connection() as conn:
        try:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                    (version, description),
                )
        except Exception as e:
            logger.error("Failed to apply migration %d: %s", version, e)
            raise

    logger.info("Applied migration %d: %s", version, description)
    return True


def _parse_filename(path: Path) -> tuple[int, str] | None:
    """`001_initial_schema.sql` -> (1, "initial_schema"); None if unnumbered."""
    prefix, _, rest = path.stem.partition("_")
    if not prefix.isdigit():
        return None
    return int(prefix), rest


async def get_pending_migrations() -> list[dict[str, Any]]:
    """Migration files newer than the database, lowest version first."""
    current = await get_current_version()
    pending = []
    for path in MIGRATIONS_DIR.glob("*.sql"):
        parsed = _parse_filename(path)
        if parsed is None or parsed[0] <= current:
            continue
        version, description = parsed
        pending.append({"version": version, "filename": path.name, "description": description, "path": path})
    pending.sort(key=lambda m: m["version"])
    return pending


async def run_migrations() -> int:
    """Apply every pending migration in order. Returns how many ran."""
    applied = 0
    for migration in await get_pending_migrations():
        sql = migration["path"].read_text()
        if await apply_migration(migration["version"], sql, migration["description"]):
            applied += 1
    return applied


async def migrate_to_latest() -> int:
    """Apply whatever is pending and log the version change. Safe to repeat."""
    before = await get_current_version()
    applied = await run_migrations()
    if applied:
        logger.info("Schema migrated from version %d to %d", before, await get_current_version())
    else:
        logger.info("Schema at version %d", before)
    return applied


async def get_migration_history() -> list[dict[str, Any]]:
    """Applied migrations with version, applied_at and description."""
    async with _get_connection() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute(
            "SELECT version, applied_at, description FROM schema_migrations ORDER BY version"
        )
        return [
            {"version": row[0], "applied_at": row[1], "description": row[2]}
            async for row in cur
        ]
