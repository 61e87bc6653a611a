from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from clientdesk.core.config import get_settings
from clientdesk.core.security import TokenExpiredError, TokenInvalidError, decode_token, extract_bearer_token
from clientdesk.metrics import observe_rate_limited


logger = logging.getLogger("clientdesk.rate_limit")


@dataclass
class MutationBucket:
    capacity: float
    tokens: float
    refilled_at: float = field(default_factory=time.monotonic)

    def consume(self, now: float, refill_per_second: float) -> int:
        """Take one token; returns 0 on success or the seconds to wait."""
        elapsed = max(0.0, now - self.refilled_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * refill_per_second)
        self.refilled_at = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return 0
        return max(1, math.ceil((1.0 - self.tokens) / refill_per_second))


class MutationLimiter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[tuple[str, str], MutationBucket] = {}

    def acquire(self, caller: str, route_group: str, per_window: int, window_seconds: int) -> int:
        if per_window <= 0:
            return window_seconds
        now = time.monotonic()
        with self._lock:
            bucket = self._buckets.get((caller, route_group))
            if bucket is None:
                bucket = MutationBucket(capacity=float(per_window), tokens=float(per_window), refilled_at=now)
                self._buckets[(caller, route_group)] = bucket
            return bucket.consume(now, per_window / float(window_seconds))

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = MutationLimiter()


class MutationRateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket per (caller, resource group) for writes under ``/api``."""

    mutating_methods = {"POST", "PUT", "PATCH", "DELETE"}
    exempt_groups = {"auth"}

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        if settings.rate_limit_disabled or request.method.upper() not in self.mutating_methods:
            return await call_next(request)

        route_group = route_group_for(request.url.path)
        if route_group is None or route_group in self.exempt_groups:
            return await call_next(request)

        caller = caller_key(request)
        retry_after = _limiter.acquire(
            caller,
            route_group,
            per_window=settings.rate_limit_mutations_per_minute,
            window_seconds=settings.rate_limit_window_seconds,
        )
        if retry_after == 0:
            return await call_next(request)

        observe_rate_limited(route_group)
        logger.warning("rate_limit.exceeded", extra={"path": request.url.path, "user_id": caller, "action": route_group})
        response = JSONResponse(
            status_code=429,
            content={"success": False, "message": "Too many requests", "error": "Too many requests"},
        )
        response.headers["Retry-After"] = str(retry_after)
        return response


def route_group_for(path: str) -> str | None:
    """``/api/leads/123/convert`` -> ``leads``; paths outside ``/api`` are not limited."""
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2 or parts[0] != "api":
        return None
    return parts[1]


def caller_key(request: Request) -> str:
    token = extract_bearer_token(request.headers.get("authorization"))
    if token:
        try:
            subject = decode_token(token, "access").get("sub")
        except (TokenExpiredError, TokenInvalidError):
            subject = None
        if subject:
            return f"user:{subject}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def reset_rate_limiter() -> None:
    _limiter.clear()
