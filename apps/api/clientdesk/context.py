from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass


@dataclass
class RequestScope:
    """Per-request values that log records and error responses pick up."""

    correlation_id: str
    client_ip: str | None = None
    user_id: str | None = None


_scope_var: ContextVar[RequestScope | None] = ContextVar("clientdesk_request_scope", default=None)


def begin_request(correlation_id: str, client_ip: str | None = None) -> Token[RequestScope | None]:
    return _scope_var.set(RequestScope(correlation_id=correlation_id, client_ip=client_ip))


def end_request(token: Token[RequestScope | None]) -> None:
    _scope_var.reset(token)


def current_scope() -> RequestScope | None:
    return _scope_var.get()


def bind_user(user_id: str) -> None:
    scope = _scope_var.get()
    if scope is not None:
        scope.user_id = user_id
