"""API middleware: request correlation and rate limiting."""

from cfplanner.api.middleware.rate_limit import RateLimitMiddleware
from cfplanner.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RateLimitMiddleware", "RequestIdMiddleware"]
