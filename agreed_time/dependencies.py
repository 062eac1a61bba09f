"""Dependency injection for FastAPI endpoints.

Shared objects are built once in `create_app()` and stored on `app.state`;
these dependencies hand them to endpoints.

Usage in controllers:
    from agreed_time.dependencies import AppSettings

    @router.get("/example")
    async def example(settings: AppSettings):
        return {"max": settings.scheduling.max_participants}
"""

from typing import Annotated

from fastapi import Depends, Request

from agreed_time.config import Settings, get_settings
from agreed_time.ratelimit import ClientRateLimiter


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with, falling back to the cached ones."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_rate_limiter(request: Request) -> ClientRateLimiter | None:
    """The app's rate limiter, or None when rate limiting is disabled."""
    return getattr(request.app.state, "rate_limiter", None)


AppSettings = Annotated[Settings, Depends(get_app_settings)]
RateLimiter = Annotated[ClientRateLimiter | None, Depends(get_rate_limiter)]
