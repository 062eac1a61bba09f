import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from agreed_time.errors import RateLimitedError, error_response
from agreed_time.ratelimit import ClientRateLimiter, client_identity


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """DEBUG line per request with status and latency; enabled by REQUEST_DEBUG."""

    def __init__(self, app, logger_name: str = "agreed_time.http"):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        peer = request.client.host if request.client else "-"
        try:
            response: Response = await call_next(request)
        except Exception as e:
            self._logger.warning(
                "%s %s from %s failed after %.1fms: %r",
                request.method, request.url.path, peer, (time.perf_counter() - started) * 1000, e,
            )
            raise
        self._logger.debug(
            "%s %s from %s -> %d in %.1fms",
            request.method, request.url.path, peer, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests over the client's budget with 429 before routing."""

    def __init__(self, app, limiter: ClientRateLimiter, exempt_paths: tuple[str, ...] = ("/health",)):
        super().__init__(app)
        self._limiter = limiter
        self._exempt = exempt_paths
        self._logger = logging.getLogger("agreed_time.ratelimit")

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self._exempt:
            return await call_next(request)
        identity = client_identity(
            request.headers.get("x-forwarded-for"),
            request.client.host if request.client else None,
        )
        if not self._limiter.allow(identity):
            self._logger.warning("Rate limited client=%s path=%s", identity, request.url.path)
            return error_response(RateLimitedError())
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
