import logging

from fastapi import APIRouter

from agreed_time import db
from agreed_time.dependencies import RateLimiter

logger = logging.getLogger("agreed_time.health")
router = APIRouter()


@router.get("/health")
async def health(limiter: RateLimiter) -> dict[str, object]:
    body: dict[str, object] = {"status": "ok", "database": "not_initialized"}
    if db.get_pool() is not None:
        try:
            async with db.connection() as conn:
                await conn.execute("SELECT 1")
            body["database"] = "healthy"
        except Exception:
            logger.warning("Database health check failed", exc_info=True)
            body["database"] = "unhealthy"
        body["pool"] = db.get_pool_stats()

    if limiter is not None:
        body["tracked_clients"] = len(limiter)
    return body
