from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.auth.schemas import AuthenticatedUser, ChangePasswordRequest, LoginRequest, LoginResponse, TokenResponse
from clientdesk.core.errors import BadRequestError, NotFoundError, UnauthorizedError
from clientdesk.core.security import (
    TokenExpiredError,
    TokenInvalidError,
    decode_token,
    hash_password,
    issue_token_pair,
    token_subject,
    verify_password,
)
from clientdesk.metrics import observe_login
from clientdesk.users.models import User


logger = logging.getLogger("clientdesk.auth")


def _authenticated_user(user: User) -> AuthenticatedUser:
    client = user.client_profile
    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        client_id=client.id if client is not None else None,
    )


class AuthService:
    def login(self, session: Session, dto: LoginRequest) -> LoginResponse:
        email = dto.email.lower()
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            observe_login("unknown_user")
            raise UnauthorizedError("Invalid email or password")

        # Checked before the password so a deactivated account never authenticates.
        if not user.is_active:
            observe_login("deactivated")
            raise UnauthorizedError("Account is deactivated. Please contact support.")

        if not verify_password(user.password_hash, dto.password):
            observe_login("bad_password")
            logger.info("auth.login_failed", extra={"user_id": str(user.id)})
            raise UnauthorizedError("Invalid email or password")

        tokens = issue_token_pair(user.id, user.email, user.role)
        observe_login("success")
        logger.info("auth.login", extra={"user_id": str(user.id)})
        return LoginResponse(
            user=_authenticated_user(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )

    def refresh(self, session: Session, refresh_token: str) -> TokenResponse:
        try:
            user_id = token_subject(decode_token(refresh_token, "refresh"))
        except (TokenExpiredError, TokenInvalidError):
            raise UnauthorizedError("Invalid or expired refresh token")

        user = session.get(User, user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")

        tokens = issue_token_pair(user.id, user.email, user.role)
        return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)

    def me(self, session: Session, identity: Identity) -> AuthenticatedUser:
        user = session.get(User, identity.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return _authenticated_user(user)

    def change_password(self, session: Session, user_id: uuid.UUID, dto: ChangePasswordRequest) -> None:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not verify_password(user.password_hash, dto.current_password):
            raise BadRequestError("Current password is incorrect")

        user.password_hash = hash_password(dto.new_password)
        session.commit()
        logger.info("auth.password_changed", extra={"user_id": str(user.id)})


auth_service = AuthService()
