from __future__ import annotations

import re
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from clientdesk.authz.policy import Role
from clientdesk.core.schemas import CamelModel


UserSortField = Literal["createdAt", "firstName", "lastName", "email"]

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PASSWORD_POLICY_MESSAGE = "Password must contain at least one uppercase letter, one lowercase letter, and one number"


def check_password_policy(value: str) -> str:
    if not _PASSWORD_RE.match(value):
        raise ValueError(PASSWORD_POLICY_MESSAGE)
    return value


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: str | None = None
    role: Role = Role.OPERATOR
    is_active: bool = True

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_policy(value)


class UserUpdate(CamelModel):
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    phone: str | None = None
    role: Role | None = None
    is_active: bool | None = None


class PasswordReset(CamelModel):
    new_password: str = Field(min_length=8)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_policy(value)


class UserRead(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserCounts(CamelModel):
    created_leads: int
    assigned_leads: int
    assigned_claims: int


class UserDetailRead(UserRead):
    counts: UserCounts


class AssignableUserRead(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    role: Role


class UserSummary(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
