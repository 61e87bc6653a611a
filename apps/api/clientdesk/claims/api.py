from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.claims.schemas import (
    AttachmentRead,
    ClaimAssign,
    ClaimCreate,
    ClaimDetailRead,
    ClaimPriority,
    ClaimRead,
    ClaimSortField,
    ClaimStats,
    ClaimStatus,
    ClaimStatusUpdate,
    ClaimUpdate,
)
from clientdesk.claims.service import claim_service
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.errors import BadRequestError
from clientdesk.core.rbac import manager_only, staff_only
from clientdesk.core.schemas import ApiResponse, MessageResponse, PagedResponse, ok, paged


router = APIRouter(prefix="/api/claims", tags=["claims"])


def read_upload(file: UploadFile | None) -> tuple[bytes, str | None, str | None]:
    if file is None:
        raise BadRequestError("No file uploaded")
    return file.file.read(), file.filename, file.content_type


def attachment_response(session: Session, identity: Identity, claim_id: uuid.UUID, attachment_id: uuid.UUID) -> FileResponse:
    attachment = claim_service.get_attachment(session, identity, claim_id, attachment_id)
    return FileResponse(attachment.path, media_type=attachment.mime_type, filename=attachment.original_name)


@router.get("/stats", response_model=ApiResponse[ClaimStats])
def claim_stats(db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[ClaimStats]:
    return ok(claim_service.stats(db, identity), "Claim statistics retrieved")


@router.get("", response_model=PagedResponse[ClaimRead])
def list_claims(
    params: PageParams = Depends(page_params),
    status_filter: ClaimStatus | None = Query(default=None, alias="status"),
    priority: ClaimPriority | None = Query(default=None),
    client_id: uuid.UUID | None = Query(default=None, alias="clientId"),
    assigned_to_id: uuid.UUID | None = Query(default=None, alias="assignedToId"),
    sort_by: ClaimSortField = Query(default="createdAt", alias="sortBy"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> PagedResponse[ClaimRead]:
    rows, meta = claim_service.list_claims(
        db,
        identity,
        params,
        status=status_filter,
        priority=priority,
        client_id=client_id,
        assigned_to_id=assigned_to_id,
        sort_by=sort_by,
    )
    return paged(rows, meta, "Claims retrieved")


@router.post("", response_model=ApiResponse[ClaimDetailRead], status_code=status.HTTP_201_CREATED)
def create_claim(
    payload: ClaimCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.create_claim(db, identity, payload), "Claim created")


@router.get("/{claim_id}", response_model=ApiResponse[ClaimDetailRead])
def get_claim(claim_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.get_claim(db, identity, claim_id), "Claim retrieved")


@router.put("/{claim_id}", response_model=ApiResponse[ClaimDetailRead])
def update_claim(
    claim_id: uuid.UUID,
    payload: ClaimUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.update_claim(db, identity, claim_id, payload), "Claim updated")


@router.delete("/{claim_id}", response_model=MessageResponse)
def delete_claim(claim_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(manager_only)) -> MessageResponse:
    claim_service.delete_claim(db, identity, claim_id)
    return MessageResponse(message="Claim deleted")


@router.put("/{claim_id}/status", response_model=ApiResponse[ClaimDetailRead])
def update_claim_status(
    claim_id: uuid.UUID,
    payload: ClaimStatusUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.update_status(db, identity, claim_id, payload), "Claim status updated")


@router.put("/{claim_id}/assign", response_model=ApiResponse[ClaimDetailRead])
def assign_claim(
    claim_id: uuid.UUID,
    payload: ClaimAssign,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClaimDetailRead]:
    return ok(claim_service.assign(db, identity, claim_id, payload), "Claim assigned")


@router.post("/{claim_id}/attachments", response_model=ApiResponse[AttachmentRead], status_code=status.HTTP_201_CREATED)
def upload_attachment(
    claim_id: uuid.UUID,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[AttachmentRead]:
    content, original_name, mime_type = read_upload(file)
    attachment = claim_service.add_attachment(
        db, identity, claim_id, content=content, original_name=original_name, mime_type=mime_type
    )
    return ok(attachment, "Attachment uploaded")


@router.get("/{claim_id}/attachments/{attachment_id}")
def download_attachment(
    claim_id: uuid.UUID,
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> FileResponse:
    return attachment_response(db, identity, claim_id, attachment_id)


@router.delete("/{claim_id}/attachments/{attachment_id}", response_model=MessageResponse)
def delete_attachment(
    claim_id: uuid.UUID,
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> MessageResponse:
    claim_service.delete_attachment(db, identity, claim_id, attachment_id)
    return MessageResponse(message="Attachment deleted")
