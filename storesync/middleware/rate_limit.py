"""
Rate limiting middleware.

Three fixed-window limits:
- per client IP, for every request;
- per X-API-Key, for every authenticated request;
- per X-API-Key on POST .../sync, since each manual sync spends the
  tenant's own Shopify API budget.

Returns 429 Too Many Requests with Retry-After when any limit is exceeded.
"""
import time
import logging
from collections import defaultdict
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE_IP = 100
DEFAULT_REQUESTS_PER_MINUTE_USER = 100
DEFAULT_SYNCS_PER_MINUTE = 6
WINDOW_SECONDS = 60


class InMemoryRateLimitStore:
    """
    Counters keyed by (identifier, window_start); counts reset each window.
    Process-local: with several API workers each enforces its own limit.
    """

    def __init__(self, window_seconds: int = WINDOW_SECONDS, clock: Callable[[], float] = time.time):
        self._counts: dict[tuple[str, int], int] = defaultdict(int)
        self._window = window_seconds
        self._clock = clock

    def _window_start(self) -> int:
        return int(self._clock() // self._window) * self._window

    def retry_after(self) -> int:
        """Seconds until the current window closes."""
        return max(1, self._window_start() + self._window - int(self._clock()))

    def increment(self, key: str) -> int:
        w = self._window_start()
        self._counts[(key, w)] += 1
        return self._counts[(key, w)]

    def cleanup_old(self):
        w = self._window_start()
        for k in [k for k in self._counts if k[1] < w]:
            del self._counts[k]

    def reset(self):
        self._counts.clear()


_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


def get_client_ip(request: Request) -> str:
    """Resolve client IP, respecting X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "0.0.0.0"


def is_sync_trigger(request: Request) -> bool:
    return request.method == "POST" and request.url.path.rstrip("/").endswith("/sync")


def _rate_limit_response(retry_after_seconds: int) -> Response:
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please retry after the time indicated in Retry-After.",
            "retry_after_seconds": retry_after_seconds,
        },
        headers={"Retry-After": str(retry_after_seconds)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies IP, API-key and manual-sync limits; exempt paths skip all of them."""

    def __init__(
        self,
        app,
        requests_per_minute_ip: int = DEFAULT_REQUESTS_PER_MINUTE_IP,
        requests_per_minute_user: int = DEFAULT_REQUESTS_PER_MINUTE_USER,
        syncs_per_minute: int = DEFAULT_SYNCS_PER_MINUTE,
        exempt_paths: Optional[list[str]] = None,
        store: Optional[InMemoryRateLimitStore] = None,
    ):
        super().__init__(app)
        self.rpm_ip = requests_per_minute_ip
        self.rpm_user = requests_per_minute_user
        self.syncs_per_minute = syncs_per_minute
        self.exempt = set(exempt_paths or ["/health"])
        self._store = store

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if any(path == p or path.startswith(p + "/") for p in self.exempt):
            return await call_next(request)

        store = self._store or get_store()
        store.cleanup_old()

        client_ip = get_client_ip(request)
        if store.increment(f"ip:{client_ip}") > self.rpm_ip:
            logger.warning("Rate limit exceeded for IP %s", client_ip)
            return _rate_limit_response(store.retry_after())

        api_key = request.headers.get("x-api-key")
        if api_key:
            if store.increment(f"key:{api_key}") > self.rpm_user:
                logger.warning("Rate limit exceeded for API key on %s", path)
                return _rate_limit_response(store.retry_after())
            if is_sync_trigger(request) and store.increment(f"sync:{api_key}") > self.syncs_per_minute:
                logger.warning("Manual sync rate limit exceeded on %s", path)
                return _rate_limit_response(store.retry_after())

        return await call_next(request)
