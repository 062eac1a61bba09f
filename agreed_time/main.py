import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agreed_time.config import Settings, get_settings
from agreed_time.controllers.events import router as events_router
from agreed_time.controllers.health import router as health_router
from agreed_time.errors import register_exception_handlers
from agreed_time.lifespan import cleanup_resources, setup_resources
from agreed_time.middleware import HTTPLogMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from agreed_time.ratelimit import ClientRateLimiter


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    rate_limiter: ClientRateLimiter | None = None
    if settings.rate_limit.enabled:
        rate_limiter = ClientRateLimiter(
            max_requests=settings.rate_limit.max_requests,
            window_seconds=settings.rate_limit.window_seconds,
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        resources = await setup_resources(settings, rate_limiter)
        try:
            yield
        finally:
            await cleanup_resources(resources)

    app = FastAPI(title="Agreed Time API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    register_exception_handlers(app)

    # Last added is outermost: security headers and CORS wrap every response,
    # including 429s from the rate limiter.
    if rate_limiter is not None:
        app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.debug.request:
        logging.getLogger("agreed_time.http").setLevel(logging.DEBUG)
        app.add_middleware(HTTPLogMiddleware)

    app.include_router(health_router)
    app.include_router(events_router)
    return app


app = create_app()
