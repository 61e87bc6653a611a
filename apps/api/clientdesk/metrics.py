from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

auth_logins_total = Counter(
    "clientdesk_auth_logins_total",
    "Login attempts by outcome",
    ["outcome"],
)

activities_recorded_total = Counter(
    "clientdesk_activities_recorded_total",
    "Activity log rows appended by action",
    ["action"],
)

leads_converted_total = Counter(
    "clientdesk_leads_converted_total",
    "Leads converted into clients",
)

attachment_cleanup_failures_total = Counter(
    "clientdesk_attachment_cleanup_failures_total",
    "Stored attachment files that could not be removed",
)

mutations_rate_limited_total = Counter(
    "clientdesk_mutations_rate_limited_total",
    "Mutations rejected by the rate limiter",
    ["route_group"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_login(outcome: str) -> None:
    auth_logins_total.labels(outcome=outcome).inc()


def observe_activity(action: str) -> None:
    activities_recorded_total.labels(action=action).inc()


def observe_lead_converted() -> None:
    leads_converted_total.inc()


def observe_attachment_cleanup_failure() -> None:
    attachment_cleanup_failures_total.inc()


def observe_rate_limited(route_group: str) -> None:
    mutations_rate_limited_total.labels(route_group=route_group).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
