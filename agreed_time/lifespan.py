"""Application startup and shutdown.

Opens the database pool (running pending migrations) and starts the expiry
scheduler on startup; stops the scheduler and closes the pool on shutdown.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from agreed_time import db
from agreed_time.batch.expiry import start_expiry_scheduler
from agreed_time.config import Settings
from agreed_time.ratelimit import ClientRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    stop_event: asyncio.Event | None = None
    background_tasks: list[asyncio.Task] = field(default_factory=list)
    db_enabled: bool = False


async def init_database(settings: Settings) -> bool:
    """Initialize the connection pool if the database feature is on.

    Returns:
        True if the pool was initialized, False otherwise.
    """
    if not settings.features.database:
        logger.info("Database disabled; skipping pool initialization")
        return False
    try:
        await db.init_pool()
        return True
    except Exception as e:
        logger.warning("Failed to initialize database: %s", e)
    return False


async def setup_resources(
    settings: Settings,
    rate_limiter: ClientRateLimiter | None = None,
) -> LifespanResources:
    """Set up the pool and background tasks.

    Args:
        settings: Application settings.
        rate_limiter: Passed to the expiry scheduler so it can purge stale windows.
    """
    resources = LifespanResources()
    resources.db_enabled = await init_database(settings)

    if settings.features.cleanup and resources.db_enabled:
        resources.stop_event = asyncio.Event()
        resources.background_tasks = await start_expiry_scheduler(
            resources.stop_event, settings, rate_limiter
        )

    return resources


async def cleanup_resources(resources: LifespanResources, grace_seconds: float = 5.0) -> None:
    """Signal background tasks to stop, cancel stragglers, then close the pool."""
    tasks = resources.background_tasks
    if resources.stop_event is not None:
        resources.stop_event.set()
    if tasks:
        _, still_running = await asyncio.wait(tasks, timeout=grace_seconds)
        for task in still_running:
            logger.warning("Cancelling background task %s after %.0fs", task.get_name(), grace_seconds)
            task.cancel()

    if resources.db_enabled:
        try:
            await db.close_pool()
        except Exception:
            logger.exception("Failed to close database pool")
