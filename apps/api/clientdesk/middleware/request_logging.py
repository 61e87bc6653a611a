from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from clientdesk.context import current_scope
from clientdesk.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("clientdesk.request")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _scope_fields() -> dict[str, str | None]:
    scope = current_scope()
    if scope is None:
        return {}
    return {"correlation_id": scope.correlation_id, "user_id": scope.user_id, "client_ip": scope.client_ip}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log plus request metrics. Client errors log at WARNING, crashes at ERROR.

    The path label is resolved after the downstream app ran, once the router
    has stored the matched route in the shared ASGI scope.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        method = request.method
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = _elapsed_ms(started)
            path = resolve_http_path_label(request)
            observe_http_request(method=method, path=path, status=500, duration=duration_ms / 1000)
            logger.error(
                "http.error",
                exc_info=True,
                extra={"method": method, "path": path, "status_code": 500, "duration_ms": duration_ms, **_scope_fields()},
            )
            raise

        duration_ms = _elapsed_ms(started)
        path = resolve_http_path_label(request)
        status_code = response.status_code
        observe_http_request(method=method, path=path, status=status_code, duration=duration_ms / 1000)
        level = logging.WARNING if 400 <= status_code < 500 else logging.INFO
        logger.log(
            level,
            "http.request",
            extra={"method": method, "path": path, "status_code": status_code, "duration_ms": duration_ms, **_scope_fields()},
        )
        return response
