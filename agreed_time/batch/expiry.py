"""
Expiry job for old scheduling polls.

Events older than the retention window (default 7 days) are deleted along
with their slots, participants and availability.

The API process runs this on a timer (see `start_expiry_scheduler`). It can
also be run by hand:

Usage:
    python -m agreed_time.batch.expiry [--retention-days N]

Arguments:
    --retention-days N    Delete events created more than N days ago
                          (default: SCHEDULING_RETENTION_DAYS, 7)
"""

import argparse
import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from agreed_time import db
from agreed_time.config import Settings, get_settings
from agreed_time.ratelimit import ClientRateLimiter

logger = logging.getLogger(__name__)


async def run_expiry_job(retention_days: int) -> dict[str, Any]:
    """Delete expired events once and return a summary."""
    started = datetime.now(UTC)
    async with db.connection() as conn:
        deleted = await db.delete_expired_events(conn, retention_days)
    if deleted > 0:
        logger.info("Deleted %d expired events (retention=%dd)", deleted, retention_days)
    else:
        logger.debug("No expired events (retention=%dd)", retention_days)
    return {
        "job_started_at": started.isoformat(),
        "job_completed_at": datetime.now(UTC).isoformat(),
        "retention_days": retention_days,
        "deleted_events": deleted,
    }


async def start_expiry_scheduler(
    stop_event: asyncio.Event,
    settings: Settings,
    rate_limiter: ClientRateLimiter | None = None,
) -> list[asyncio.Task]:
    """
    Start the expiry job as a background task.

    Each tick deletes expired events and drops elapsed rate limit windows.
    A failed tick is logged and the job simply runs again on the next one.

    Args:
        stop_event: Event to signal shutdown.
        settings: Supplies the retention window and the tick interval.
        rate_limiter: Limiter whose stale windows are purged each tick.

    Returns:
        List containing the scheduler task.
    """
    interval = settings.scheduling.cleanup_interval_sec
    initial_delay = settings.scheduling.cleanup_initial_delay_sec
    retention_days = settings.scheduling.retention_days

    async def _scheduler_loop() -> None:
        logger.info(
            "Expiry scheduler started (interval=%ds, retention=%dd)", interval, retention_days
        )

        if initial_delay > 0:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=initial_delay)
                logger.info("Expiry scheduler stopped")
                return
            except asyncio.TimeoutError:
                pass

        while not stop_event.is_set():
            try:
                await run_expiry_job(retention_days)
            except Exception:
                logger.exception("Scheduled expiry job failed; retrying next run")

            if rate_limiter is not None:
                rate_limiter.purge_expired()

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Expiry scheduler stopped")

    task = asyncio.create_task(_scheduler_loop())
    return [task]


async def _run_once(retention_days: int) -> dict[str, Any]:
    await db.init_pool()
    try:
        return await run_expiry_job(retention_days)
    finally:
        await db.close_pool()


def main() -> None:
    """CLI entry point for the expiry job."""
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )
    parser = argparse.ArgumentParser(
        description="Delete scheduling polls past their retention window.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=get_settings().scheduling.retention_days,
        help="Delete events created more than this many days ago",
    )
    args = parser.parse_args()
    if args.retention_days <= 0:
        parser.error("--retention-days must be positive")

    summary = asyncio.run(_run_once(args.retention_days))
    logger.info("Expiry job completed: %s", summary)


if __name__ == "__main__":
    main()
