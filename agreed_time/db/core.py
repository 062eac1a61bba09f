"""Connection pool lifecycle and the two ways of borrowing a connection."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import psycopg
from psycopg_pool import AsyncConnectionPool

from agreed_time.config import get_settings

logger = logging.getLogger(__name__)

_pool: AsyncConnectionPool | None = None


async def init_pool() -> None:
    """Open the shared pool and bring the schema up to date.

    Calling it again while the pool is open does nothing.
    """
    global _pool
    if _pool is not None:
        return
    pg = get_settings().postgres
    pool = AsyncConnectionPool(
        pg.get_dsn(),
        min_size=pg.pool_min_size,
        max_size=pg.pool_max_size,
        timeout=pg.pool_timeout,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await pool.open()
    _pool = pool
    logger.info("Opened connection pool (%d-%d connections)", pg.pool_min_size, pg.pool_max_size)

    from agreed_time.db.migrations import migrate_to_latest

    await migrate_to_latest()


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    pool, _pool = _pool, None
    await pool.close()
    logger.info("Closed connection pool")


@asynccontextmanager
async def _get_connection(autocommit: bool = True) -> AsyncIterator[psycopg.AsyncConnection]:
    # Without a pool (CLI tools, tests) fall back to a one-off connection.
    if _pool is None:
        dsn = get_settings().postgres.get_dsn()
        async with await psycopg.AsyncConnection.connect(dsn, autocommit=autocommit) as conn:
            yield conn
        return
    async with _pool.connection() as conn:
        if autocommit:
            await conn.set_autocommit(True)
        yield conn


@asynccontextmanager
async def connection() -> AsyncIterator[psycopg.AsyncConnection]:
    """Autocommit connection for single-statement reads and writes."""
    async with _get_connection() as conn:
        yield conn


@asynccontextmanager
async def transaction() -> AsyncIterator[psycopg.AsyncConnection]:
    """Unit of work: every statement run on the yielded connection commits
    together when the block exits, or rolls back if it raises."""
    async with _get_connection() as conn:
        async with conn.transaction():
            yield conn


def get_pool() -> AsyncConnectionPool | None:
    return _pool


def get_pool_stats() -> dict[str, object]:
    """Pool occupancy for the health endpoint."""
    if _pool is None:
        return {"status": "not_initialized"}
    stats = _pool.get_stats()
    return {
        "status": "active",
        "size": stats.get("pool_size", 0),
        "idle": stats.get("pool_available", 0),
        "waiting": stats.get("requests_waiting", 0),
    }
