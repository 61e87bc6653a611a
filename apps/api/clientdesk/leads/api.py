from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.rbac import manager_only, staff_only
from clientdesk.core.schemas import ApiResponse, MessageResponse, PagedResponse, ok, paged
from clientdesk.leads.schemas import (
    LeadAssign,
    LeadConversionResult,
    LeadConvert,
    LeadCreate,
    LeadRead,
    LeadSortField,
    LeadStats,
    LeadStatus,
    LeadStatusUpdate,
    LeadUpdate,
)
from clientdesk.leads.service import lead_service


router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.get("/stats", response_model=ApiResponse[LeadStats])
def lead_stats(db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[LeadStats]:
    return ok(lead_service.stats(db, identity), "Lead statistics retrieved")


@router.get("/sources", response_model=ApiResponse[list[str]])
def lead_sources(db: Session = Depends(get_db), _: Identity = Depends(staff_only)) -> ApiResponse[list[str]]:
    return ok(lead_service.sources(db), "Lead sources retrieved")


@router.get("", response_model=PagedResponse[LeadRead])
def list_leads(
    params: PageParams = Depends(page_params),
    status_filter: LeadStatus | None = Query(default=None, alias="status"),
    source: str | None = Query(default=None),
    assigned_to_id: uuid.UUID | None = Query(default=None, alias="assignedToId"),
    sort_by: LeadSortField = Query(default="createdAt", alias="sortBy"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> PagedResponse[LeadRead]:
    rows, meta = lead_service.list_leads(
        db,
        identity,
        params,
        status=status_filter,
        source=source,
        assigned_to_id=assigned_to_id,
        sort_by=sort_by,
    )
    return paged(rows, meta, "Leads retrieved")


@router.post("", response_model=ApiResponse[LeadRead], status_code=status.HTTP_201_CREATED)
def create_lead(payload: LeadCreate, db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[LeadRead]:
    return ok(lead_service.create_lead(db, identity, payload), "Lead created")


@router.get("/{lead_id}", response_model=ApiResponse[LeadRead])
def get_lead(lead_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[LeadRead]:
    return ok(lead_service.get_lead(db, identity, lead_id), "Lead retrieved")


@router.put("/{lead_id}", response_model=ApiResponse[LeadRead])
def update_lead(
    lead_id: uuid.UUID,
    payload: LeadUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[LeadRead]:
    return ok(lead_service.update_lead(db, identity, lead_id, payload), "Lead updated")


@router.delete("/{lead_id}", response_model=MessageResponse)
def delete_lead(lead_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(manager_only)) -> MessageResponse:
    lead_service.delete_lead(db, identity, lead_id)
    return MessageResponse(message="Lead deleted")


@router.put("/{lead_id}/status", response_model=ApiResponse[LeadRead])
def update_lead_status(
    lead_id: uuid.UUID,
    payload: LeadStatusUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[LeadRead]:
    return ok(lead_service.update_status(db, identity, lead_id, payload), "Lead status updated")


@router.put("/{lead_id}/assign", response_model=ApiResponse[LeadRead])
def assign_lead(
    lead_id: uuid.UUID,
    payload: LeadAssign,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[LeadRead]:
    return ok(lead_service.assign(db, identity, lead_id, payload), "Lead assigned")


@router.post("/{lead_id}/convert", response_model=ApiResponse[LeadConversionResult])
def convert_lead(
    lead_id: uuid.UUID,
    payload: LeadConvert,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[LeadConversionResult]:
    return ok(lead_service.convert(db, identity, lead_id, payload), "Lead converted to client")
