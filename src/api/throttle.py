"""Ingress throttle in front of the handlers.

A single token bucket for the whole API (sustained rate plus burst). Rejected
requests get 429 here and never reach the ingestion code.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


logger = logging.getLogger(__name__)

# Paths to exclude from throttling
EXCLUDED_PATHS = frozenset(["/health"])


@dataclass
class TokenBucket:
    """Token bucket refilled continuously at `rate_per_second`, capped at `burst`."""

    rate_per_second: float
    burst: int
    clock: Callable[[], float] = time.monotonic
    tokens: float = field(init=False)
    last_update: float = field(init=False)

    def __post_init__(self) -> None:
        if self.rate_per_second <= 0 or self.burst < 1:
            raise ValueError("rate_per_second must be > 0 and burst >= 1")
        self.tokens = float(self.burst)
        self.last_update = self.clock()

    def consume(self, tokens: int = 1) -> bool:
        now = self.clock()
        elapsed = max(0.0, now - self.last_update)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate_per_second)
        self.last_update = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def retry_after_seconds(self) -> int:
        missing = max(0.0, 1.0 - self.tokens)
        return max(1, math.ceil(missing / self.rate_per_second))


class ThrottleMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, bucket: TokenBucket):
        super().__init__(app)
        self.bucket = bucket

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        if not self.bucket.consume():
            retry_after = self.bucket.retry_after_seconds()
            logger.warning("Rate limit exceeded: %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=429,
                content={"error": "Too Many Requests"},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.bucket.burst),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.bucket.burst)
        response.headers["X-RateLimit-Remaining"] = str(max(0, int(self.bucket.tokens)))
        return response
