from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Role, STAFF_ROLES
from clientdesk.claims.models import Claim
from clientdesk.common.pagination import PageParams, apply_sort, paginate, search_filter
from clientdesk.core.errors import BadRequestError, NotFoundError
from clientdesk.core.schemas import PageMeta
from clientdesk.core.security import hash_password
from clientdesk.leads.models import Lead
from clientdesk.users.models import User
from clientdesk.users.schemas import (
    PasswordReset,
    UserCounts,
    UserCreate,
    UserDetailRead,
    UserRead,
    UserSortField,
    UserUpdate,
)


logger = logging.getLogger("clientdesk.users")

_SORT_COLUMNS = {
    "createdAt": User.created_at,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "email": User.email,
}


def require_user(session: Session, user_id: uuid.UUID, message: str = "User not found") -> User:
    """Resolve a user referenced by a request body; a dangling id is a bad request."""
    user = session.get(User, user_id)
    if user is None:
        raise BadRequestError(message)
    return user


class UserService:
    def list_users(
        self,
        session: Session,
        params: PageParams,
        *,
        role: Role | None = None,
        is_active: bool | None = None,
        sort_by: UserSortField = "createdAt",
    ) -> tuple[list[UserRead], PageMeta]:
        stmt: Select[tuple[User]] = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role.value)
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        if params.search:
            stmt = stmt.where(search_filter(params.search, User.first_name, User.last_name, User.email))

        rows, meta = paginate(session, apply_sort(stmt, _SORT_COLUMNS[sort_by], params.sort_order), params)
        return [UserRead.model_validate(row) for row in rows], meta

    def get_user(self, session: Session, user_id: uuid.UUID) -> UserDetailRead:
        user = self._get_or_404(session, user_id)
        counts = UserCounts(
            created_leads=self._count(session, select(func.count(Lead.id)).where(Lead.created_by_id == user.id)),
            assigned_leads=self._count(session, select(func.count(Lead.id)).where(Lead.assigned_to_id == user.id)),
            assigned_claims=self._count(session, select(func.count(Claim.id)).where(Claim.assigned_to_id == user.id)),
        )
        return UserDetailRead.model_validate({**UserRead.model_validate(user).model_dump(), "counts": counts})

    def create_user(self, session: Session, dto: UserCreate) -> UserRead:
        email = dto.email.lower()
        if self.find_by_email(session, email) is not None:
            raise BadRequestError("Email already in use")

        user = User(
            email=email,
            password_hash=hash_password(dto.password),
            first_name=dto.first_name,
            last_name=dto.last_name,
            phone=dto.phone,
            role=dto.role.value,
            is_active=dto.is_active,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("user.created", extra={"user_id": str(user.id)})
        return UserRead.model_validate(user)

    def update_user(self, session: Session, user_id: uuid.UUID, dto: UserUpdate) -> UserRead:
        user = self._get_or_404(session, user_id)
        changes = dto.model_dump(exclude_unset=True)

        email = changes.pop("email", None)
        if email is not None:
            email = email.lower()
            if email != user.email and self.find_by_email(session, email) is not None:
                raise BadRequestError("Email already in use")
            user.email = email

        role = changes.pop("role", None)
        if role is not None:
            user.role = Role(role).value

        for field_name, value in changes.items():
            if field_name in {"first_name", "last_name"} and value is None:
                continue
            setattr(user, field_name, value)

        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def deactivate_user(self, session: Session, user_id: uuid.UUID) -> None:
        user = self._get_or_404(session, user_id)
        user.is_active = False
        session.commit()
        logger.info("user.deactivated", extra={"user_id": str(user.id)})

    def toggle_status(self, session: Session, user_id: uuid.UUID) -> UserRead:
        user = self._get_or_404(session, user_id)
        user.is_active = not user.is_active
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def reset_password(self, session: Session, user_id: uuid.UUID, dto: PasswordReset) -> None:
        user = self._get_or_404(session, user_id)
        user.password_hash = hash_password(dto.new_password)
        session.commit()
        logger.info("user.password_reset", extra={"user_id": str(user.id)})

    def list_assignable(self, session: Session) -> Sequence[User]:
        stmt = (
            select(User)
            .where(User.is_active.is_(True), User.role.in_([role.value for role in STAFF_ROLES]))
            .order_by(User.first_name.asc())
        )
        return session.scalars(stmt).all()

    def find_by_email(self, session: Session, email: str) -> User | None:
        return session.scalar(select(User).where(User.email == email.lower()))

    def _get_or_404(self, session: Session, user_id: uuid.UUID) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _count(session: Session, stmt: Select[tuple[int]]) -> int:
        return int(session.scalar(stmt) or 0)


user_service = UserService()
