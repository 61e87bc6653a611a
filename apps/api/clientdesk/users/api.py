from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity, Role
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.rbac import admin_only, staff_only
from clientdesk.core.schemas import ApiResponse, MessageResponse, PagedResponse, ok, paged
from clientdesk.users.schemas import (
    AssignableUserRead,
    PasswordReset,
    UserCreate,
    UserDetailRead,
    UserRead,
    UserSortField,
    UserUpdate,
)
from clientdesk.users.service import user_service


router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/assignable", response_model=ApiResponse[list[AssignableUserRead]])
def list_assignable_users(
    db: Session = Depends(get_db),
    _: Identity = Depends(staff_only),
) -> ApiResponse[list[AssignableUserRead]]:
    users = user_service.list_assignable(db)
    return ok([AssignableUserRead.model_validate(user) for user in users], "Assignable users retrieved")


@router.get("", response_model=PagedResponse[UserRead])
def list_users(
    params: PageParams = Depends(page_params),
    role: Role | None = Query(default=None),
    is_active: bool | None = Query(default=None, alias="isActive"),
    sort_by: UserSortField = Query(default="createdAt", alias="sortBy"),
    db: Session = Depends(get_db),
    _: Identity = Depends(admin_only),
) -> PagedResponse[UserRead]:
    rows, meta = user_service.list_users(db, params, role=role, is_active=is_active, sort_by=sort_by)
    return paged(rows, meta, "Users retrieved")


@router.get("/{user_id}", response_model=ApiResponse[UserDetailRead])
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> ApiResponse[UserDetailRead]:
    return ok(user_service.get_user(db, user_id), "User retrieved")


@router.post("", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> ApiResponse[UserRead]:
    return ok(user_service.create_user(db, payload), "User created")


@router.put("/{user_id}", response_model=ApiResponse[UserRead])
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    _: Identity = Depends(admin_only),
) -> ApiResponse[UserRead]:
    return ok(user_service.update_user(db, user_id, payload), "User updated")


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> MessageResponse:
    user_service.deactivate_user(db, user_id)
    return MessageResponse(message="User deactivated")


@router.put("/{user_id}/toggle-status", response_model=ApiResponse[UserRead])
def toggle_user_status(user_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> ApiResponse[UserRead]:
    user = user_service.toggle_status(db, user_id)
    return ok(user, "User activated" if user.is_active else "User deactivated")


@router.put("/{user_id}/reset-password", response_model=MessageResponse)
def reset_user_password(
    user_id: uuid.UUID,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    _: Identity = Depends(admin_only),
) -> MessageResponse:
    user_service.reset_password(db, user_id, payload)
    return MessageResponse(message="Password reset successfully")
