from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.claims.api import attachment_response, read_upload
from clientdesk.claims.schemas import (
    AttachmentRead,
    ClaimDetailRead,
    ClaimPriority,
    ClaimRead,
    ClaimSortField,
    ClaimStatus,
    PortalClaimCreate,
)
from clientdesk.claims.service import claim_service
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.rbac import client_only
from clientdesk.core.schemas import ApiResponse, PagedResponse, ok, paged
from clientdesk.dashboard.schemas import ClientDashboard
from clientdesk.dashboard.service import dashboard_service
from clientdesk.portal.schemas import PortalProfileRead, PortalProfileUpdate, PortalSubscriptionRead
from clientdesk.portal.service import portal_service


router = APIRouter(prefix="/api/portal", tags=["portal"])


@router.get("/dashboard", response_model=ApiResponse[ClientDashboard])
def portal_dashboard(db: Session = Depends(get_db), identity: Identity = Depends(client_only)) -> ApiResponse[ClientDashboard]:
    return ok(dashboard_service.client(db, identity), "Dashboard retrieved")


@router.get("/profile", response_model=ApiResponse[PortalProfileRead])
def get_profile(db: Session = Depends(get_db), identity: Identity = Depends(client_only)) -> ApiResponse[PortalProfileRead]:
    return ok(portal_service.get_profile(db, identity), "Profile retrieved")


@router.put("/profile", response_model=ApiResponse[PortalProfileRead])
def update_profile(
    payload: PortalProfileUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> ApiResponse[PortalProfileRead]:
    return ok(portal_service.update_profile(db, identity, payload), "Profile updated")


@router.get("/subscriptions", response_model=ApiResponse[list[PortalSubscriptionRead]])
def list_subscriptions(
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> ApiResponse[list[PortalSubscriptionRead]]:
    return ok(portal_service.subscriptions(db, identity), "Subscriptions retrieved")


@router.get("/claims", response_model=PagedResponse[ClaimRead])
def list_claims(
    params: PageParams = Depends(page_params),
    status_filter: ClaimStatus | None = Query(default=None, alias="status"),
    priority: ClaimPriority | None = Query(default=None),
    sort_by: ClaimSortField = Query(default="createdAt", alias="sortBy"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> PagedResponse[ClaimRead]:
    rows, meta = claim_service.list_claims(db, identity, params, status=status_filter, priority=priority, sort_by=sort_by)
    return paged(rows, meta, "Claims retrieved")


@router.post("/claims", response_model=ApiResponse[ClaimDetailRead], status_code=status.HTTP_201_CREATED)
def create_claim(
    payload: PortalClaimCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.create_portal_claim(db, identity, payload), "Claim created")


@router.get("/claims/{claim_id}", response_model=ApiResponse[ClaimDetailRead])
def get_claim(claim_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(client_only)) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.get_claim(db, identity, claim_id), "Claim retrieved")


@router.post("/claims/{claim_id}/attachments", response_model=ApiResponse[AttachmentRead], status_code=status.HTTP_201_CREATED)
def upload_attachment(
    claim_id: uuid.UUID,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> ApiResponse[AttachmentRead]:
    content, original_name, mime_type = read_upload(file)
    attachment = claim_service.add_attachment(
        db, identity, claim_id, content=content, original_name=original_name, mime_type=mime_type
    )
    return ok(attachment, "Attachment uploaded")


@router.get("/claims/{claim_id}/attachments/{attachment_id}")
def download_attachment(
    claim_id: uuid.UUID,
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(client_only),
) -> FileResponse:
    return attachment_response(db, identity, claim_id, attachment_id)
