from __future__ import annotations

from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from clientdesk.authz.policy import Role
from clientdesk.core.schemas import CamelModel
from clientdesk.users.schemas import check_password_policy


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_policy(value)


class AuthenticatedUser(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    client_id: UUID | None = None


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str


class LoginResponse(TokenResponse):
    user: AuthenticatedUser
