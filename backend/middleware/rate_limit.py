"""Rate limiting middleware for FastAPI.

Protects the write endpoints (send, retry, forward) that fan out to the file
host, the assistant model and batched store writes. Uses a simple in-memory
sliding window per caller.
"""

import hashlib
import logging
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from responses import ResponseCode, error_dict

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_minute: int = 30
    requests_per_hour: int = 600
    burst_limit: int = 8  # Max requests in 10 seconds


class RateLimiter:
    """Simple in-memory rate limiter using sliding window."""

    def __init__(self, config: RateLimitConfig | None = None) -> None:
        self.config = config or RateLimitConfig()
        self._requests: dict[str, list[float]] = defaultdict(list)

    def get_client_id(self, request: Request) -> str:
        """Extract client identifier from request."""
        # Bearer token first, hashed so raw tokens never sit in memory keys
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer" and token:
            digest = hashlib.sha256(token.encode()).hexdigest()[:16]
            return f"token:{digest}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

        client = request.client
        if client:
            return f"ip:{client.host}"

        return "unknown"

    def _cleanup_old_requests(self, client_id: str, now: float) -> None:
        """Remove requests older than 1 hour."""
        hour_ago = now - 3600
        self._requests[client_id] = [
            ts for ts in self._requests[client_id] if ts > hour_ago
        ]

    def check_rate_limit(self, request: Request) -> tuple[bool, str | None, dict]:
        """Check if request is within rate limits.

        Returns:
            Tuple of (allowed, error_message, headers).
        """
        client_id = self.get_client_id(request)
        now = time.time()

        self._cleanup_old_requests(client_id, now)
        requests = self._requests[client_id]

        windows = (
            (10, self.config.burst_limit, "Too many messages. Please slow down."),
            (60, self.config.requests_per_minute, "Rate limit exceeded. Please wait a moment."),
            (3600, self.config.requests_per_hour, "Hourly rate limit exceeded."),
        )
        for seconds, limit, message in windows:
            count = sum(1 for ts in requests if ts > now - seconds)
            if count >= limit:
                return (
                    False,
                    message,
                    {
                        "X-RateLimit-Limit": str(limit),
                        "X-RateLimit-Remaining": "0",
                        "Retry-After": str(seconds),
                    },
                )

        minute_requests = sum(1 for ts in requests if ts > now - 60)
        requests.append(now)

        return (
            True,
            None,
            {
                "X-RateLimit-Limit": str(self.config.requests_per_minute),
                "X-RateLimit-Remaining": str(
                    self.config.requests_per_minute - minute_requests - 1
                ),
            },
        )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to apply rate limiting to message writes."""

    # POSTs under this prefix send, retry or forward messages
    RATE_LIMITED_PREFIX = "/api/chat/messages"

    def __init__(self, app, config: RateLimitConfig | None = None) -> None:
        super().__init__(app)
        self.limiter = RateLimiter(config)

    def is_limited(self, request: Request) -> bool:
        return request.method == "POST" and request.url.path.startswith(
            self.RATE_LIMITED_PREFIX
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        if not self.is_limited(request):
            return await call_next(request)

        allowed, error_message, headers = self.limiter.check_rate_limit(request)

        if not allowed:
            logger.warning(
                "Rate limit exceeded for %s on %s",
                self.limiter.get_client_id(request),
                request.url.path,
            )
            response = JSONResponse(
                status_code=429,
                content=error_dict(ResponseCode.RATE_LIMIT, error_message),
            )
            for key, value in headers.items():
                response.headers[key] = value
            return response

        response = await call_next(request)

        for key, value in headers.items():
            response.headers[key] = value

        return response
