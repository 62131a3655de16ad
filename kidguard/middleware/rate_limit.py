"""
Rate limiting middleware for API endpoints.

Implements per-IP sliding-window limits to slow down credential guessing and
token scanning. Uses in-memory storage, so limits are per process.
"""

import os
import time
from typing import Dict, List, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")

# (path prefix, bucket, limit, window seconds, message); first match wins
RATE_LIMIT_RULES: List[Tuple[str, str, int, int, str]] = [
    ("/api/auth/", "auth", 5, 60, "Too many authentication attempts. Please try again later."),
    ("/api/pickup/verify-qr", "verify", 30, 60, "Too many pickup verifications. Please slow down."),
    ("/api/", "api", 100, 60, "Too many requests. Please slow down."),
]


class RateLimiter:
    """
    Simple in-memory rate limiter.

    For multi-replica deployments, replace with a shared store.
    """

    def __init__(self):
        # Storage: {key: [(timestamp, count)]}
        self.requests: Dict[str, List[Tuple[float, int]]] = {}
        self.cleanup_interval = 300  # Clean up old entries every 5 minutes
        self.last_cleanup = time.time()

    def _cleanup(self):
        """Remove old entries to prevent memory leak."""
        now = time.time()
        if now - self.last_cleanup > self.cleanup_interval:
            cutoff = now - 3600
            for key in list(self.requests.keys()):
                self.requests[key] = [
                    (ts, count) for ts, count in self.requests[key]
                    if ts > cutoff
                ]
                if not self.requests[key]:
                    del self.requests[key]
            self.last_cleanup = now

    def reset(self):
        """Forget every recorded request."""
        self.requests.clear()

    def is_allowed(self, key: str, limit: int, window: int) -> Tuple[bool, Dict]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Unique identifier for rate limit (bucket and client IP)
            limit: Maximum number of requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (allowed, headers_dict) where headers_dict contains
            rate limit information for response headers
        """
        self._cleanup()

        now = time.time()
        window_start = now - window

        current_window_requests = [
            (ts, count) for ts, count in self.requests.get(key, [])
            if ts > window_start
        ]
        self.requests[key] = current_window_requests

        request_count = sum(count for _, count in current_window_requests)
        allowed = request_count < limit

        if allowed:
            self.requests[key].append((now, 1))
            remaining = limit - request_count - 1
        else:
            remaining = 0

        if current_window_requests:
            oldest_ts = min(ts for ts, _ in current_window_requests)
            reset_time = int(oldest_ts + window)
        else:
            reset_time = int(now + window)

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(reset_time)
        }

        return allowed, headers


# Global rate limiter instance
rate_limiter = RateLimiter()


def match_rule(path: str):
    """Return the first rate limit rule covering path, or None."""
    for rule in RATE_LIMIT_RULES:
        if path.startswith(rule[0]):
            return rule
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to apply rate limiting to requests.

    Auth endpoints: 5 requests/minute per IP
    Token verification: 30 requests/minute per IP
    Other API endpoints: 100 requests/minute per IP
    """

    def __init__(self, app, enabled: bool = None, limiter: RateLimiter = None):
        super().__init__(app)
        self.enabled = RATE_LIMIT_ENABLED if enabled is None else enabled
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        rule = match_rule(request.url.path)
        if rule is None:
            return await call_next(request)

        _, bucket, limit, window, message = rule
        client_ip = request.client.host if request.client else "unknown"

        allowed, headers = self.limiter.is_allowed(f"{bucket}:{client_ip}", limit, window)

        if not allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": message, "error": "RATE_LIMITED"},
                headers=headers
            )

        response = await call_next(request)
        for header_name, header_value in headers.items():
            response.headers[header_name] = header_value
        return response
