"""
API rate limiting - per client IP, fixed window.

Two scopes: `judge` for POST /submit and /sync (each one hits the judge API,
which rate-limits us in turn) and `api` for everything else under the prefix.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from cfplanner.config import get_settings

WINDOW_SECONDS = 60

_JUDGE_ROUTES = ("/submit/", "/sync/")


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}

    def check_and_incr(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int = WINDOW_SECONDS,
    ) -> bool:
        """Returns True if under limit (and increments). False if over limit (no increment)."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        count, start = self._data.get(key, (0, now))
        if now - start >= window_seconds:
            count, start = 0, now
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600) -> None:
        """Remove entries older than max_age_seconds to avoid unbounded growth."""
        now = time.monotonic()
        stale = [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]
        for k in stale:
            self._data.pop(k, None)

    def reset(self) -> None:
        self._data.clear()


# Module-level store (single process)
_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


def scope_for(path: str, method: str, api_prefix: str) -> Optional[str]:
    """Rate-limit scope of a request, or None when it is not limited."""
    if not path.startswith(api_prefix):
        return None
    route = path[len(api_prefix):]
    if method == "POST" and route.startswith(_JUDGE_ROUTES):
        return "judge"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        scope = scope_for(request.url.path or "", request.method, settings.api_prefix)
        if scope is None:
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=7200)

        limit = settings.rate_limit_judge_per_minute if scope == "judge" else settings.rate_limit_api_per_minute
        if not store.check_and_incr(scope, _get_client_ip(request), limit):
            return Response(
                content='{"detail":"Too many requests. Please try again later."}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )
        return await call_next(request)
