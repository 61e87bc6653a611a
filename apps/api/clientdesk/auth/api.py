from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clientdesk.auth.schemas import AuthenticatedUser, ChangePasswordRequest, LoginRequest, LoginResponse, RefreshRequest, TokenResponse
from clientdesk.auth.service import auth_service
from clientdesk.authz.policy import Identity
from clientdesk.core.database import get_db
from clientdesk.core.rbac import require_authenticated
from clientdesk.core.schemas import ApiResponse, MessageResponse, ok


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=ApiResponse[LoginResponse])
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> ApiResponse[LoginResponse]:
    return ok(auth_service.login(db, payload), "Login successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)) -> ApiResponse[TokenResponse]:
    return ok(auth_service.refresh(db, payload.refresh_token), "Token refreshed")


@router.post("/logout", response_model=MessageResponse)
def logout(_: Identity = Depends(require_authenticated)) -> MessageResponse:
    # Tokens are stateless; the client discards them.
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[AuthenticatedUser])
def me(db: Session = Depends(get_db), identity: Identity = Depends(require_authenticated)) -> ApiResponse[AuthenticatedUser]:
    return ok(auth_service.me(db, identity), "User retrieved")


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_authenticated),
) -> MessageResponse:
    auth_service.change_password(db, identity.user_id, payload)
    return MessageResponse(message="Password changed successfully")
