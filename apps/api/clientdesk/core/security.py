from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from jose import ExpiredSignatureError, JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from clientdesk.core.config import get_settings


TokenType = Literal["access", "refresh"]


class TokenExpiredError(Exception):
    pass


class TokenInvalidError(Exception):
    pass


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def generate_throwaway_password() -> str:
    return secrets.token_urlsafe(24)


@dataclass(slots=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _secret_for(token_type: TokenType) -> str:
    settings = get_settings()
    return settings.jwt_refresh_secret if token_type == "refresh" else settings.jwt_secret


def _lifetime_for(token_type: TokenType) -> timedelta:
    settings = get_settings()
    if token_type == "refresh":
        return timedelta(days=settings.jwt_refresh_expires_days)
    return timedelta(minutes=settings.jwt_access_expires_minutes)


def create_token(user_id: uuid.UUID, email: str, role: str, token_type: TokenType) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "userId": str(user_id),
        "email": email,
        "role": str(role),
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + _lifetime_for(token_type)).timestamp()),
    }
    return jwt.encode(claims, _secret_for(token_type), algorithm=get_settings().jwt_algorithm)


def issue_token_pair(user_id: uuid.UUID, email: str, role: str) -> TokenPair:
    return TokenPair(
        access_token=create_token(user_id, email, role, "access"),
        refresh_token=create_token(user_id, email, role, "refresh"),
    )


def decode_token(token: str, token_type: TokenType) -> dict[str, Any]:
    try:
        payload: dict[str, Any] = jwt.decode(token, _secret_for(token_type), algorithms=[get_settings().jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("token expired") from exc
    except JWTError as exc:
        raise TokenInvalidError("token invalid") from exc

    if payload.get("type") != token_type or not payload.get("sub"):
        raise TokenInvalidError("token invalid")
    return payload


def token_subject(payload: dict[str, Any]) -> uuid.UUID:
    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError) as exc:
        raise TokenInvalidError("token invalid") from exc


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        return ""
    return authorization[len("Bearer "):].strip()
