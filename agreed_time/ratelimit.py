"""Per-client fixed-window request limiting.

State lives in process memory only: it is lost on restart and is not shared
between instances running behind a load balancer.
"""

import ipaddress
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

FALLBACK_IDENTITY = "127.0.0.1"


@dataclass
class _Window:
    start: float
    count: int


class ClientRateLimiter:
    """Allow at most `max_requests` per client identity in each window.

    A client's window opens on its first request and is replaced by a fresh
    one on the first request arriving more than `window_seconds` later.
    Rejected requests do not count against the window.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._clients: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def allow(self, identity: str) -> bool:
        """Record a request from `identity`; False means it must be rejected."""
        now = self._clock()
        with self._lock:
            window = self._clients.get(identity)
            if window is None or now - window.start > self.window_seconds:
                self._clients[identity] = _Window(start=now, count=1)
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def request_count(self, identity: str) -> int:
        """Requests counted in the identity's current window (0 if none)."""
        with self._lock:
            window = self._clients.get(identity)
            return window.count if window else 0

    def purge_expired(self) -> int:
        """Drop windows that have already elapsed. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            stale = [k for k, w in self._clients.items() if now - w.start > self.window_seconds]
            for key in stale:
                del self._clients[key]
        if stale:
            logger.debug("Purged %d expired rate limit windows", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


def client_identity(forwarded_for: str | None, peer_host: str | None) -> str:
    """Pick the address a request is accounted under.

    The first entry of X-Forwarded-For wins when it is a valid IP address;
    otherwise the peer address of the connection is used.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        try:
            return str(ipaddress.ip_address(first))
        except ValueError:
            logger.debug("Ignoring unparsable X-Forwarded-For entry %r", first)
    return peer_host or FALLBACK_IDENTITY
