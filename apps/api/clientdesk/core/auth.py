from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity, Role
from clientdesk.context import bind_user
from clientdesk.core.database import get_db
from clientdesk.core.errors import UnauthorizedError
from clientdesk.core.security import (
    TokenExpiredError,
    TokenInvalidError,
    decode_token,
    extract_bearer_token,
    token_subject,
)
from clientdesk.users.models import User


def identity_from_user(user: User) -> Identity:
    client = user.client_profile
    return Identity(
        user_id=user.id,
        email=user.email,
        role=Role(user.role),
        first_name=user.first_name,
        last_name=user.last_name,
        client_id=client.id if client is not None else None,
    )


def get_current_identity(request: Request, db: Session = Depends(get_db)) -> Identity:
    token = extract_bearer_token(request.headers.get("authorization"))
    if not token:
        raise UnauthorizedError("No token provided")

    try:
        payload = decode_token(token, "access")
        user_id = token_subject(payload)
    except TokenExpiredError:
        raise UnauthorizedError("Token expired")
    except TokenInvalidError:
        raise UnauthorizedError("Invalid token")

    user = db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account is deactivated")

    identity = identity_from_user(user)
    bind_user(str(identity.user_id))
    return identity
