from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from clientdesk.core.schemas import CamelModel
from clientdesk.users.schemas import UserSummary


ClaimStatus = Literal["OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED"]
ClaimPriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
ClaimSortField = Literal["createdAt", "updatedAt", "title", "status", "priority"]


class ClaimCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    priority: ClaimPriority = "MEDIUM"
    client_id: UUID
    assigned_to_id: UUID | None = None


class PortalClaimCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    priority: ClaimPriority = "MEDIUM"


class ClaimUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    priority: ClaimPriority | None = None
    resolution: str | None = None


class ClaimStatusUpdate(CamelModel):
    status: ClaimStatus
    resolution: str | None = None


class ClaimAssign(CamelModel):
    assigned_to_id: UUID | None


class ClaimClientSummary(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    company: str | None


class AttachmentRead(CamelModel):
    id: UUID
    claim_id: UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    created_at: datetime


class ClaimRead(CamelModel):
    id: UUID
    title: str
    description: str
    status: ClaimStatus
    priority: ClaimPriority
    resolution: str | None
    client_id: UUID
    created_by_id: UUID
    assigned_to_id: UUID | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime
    client: ClaimClientSummary | None = None
    assigned_to: UserSummary | None = None


class ClaimDetailRead(ClaimRead):
    created_by: UserSummary | None = None
    attachments: list[AttachmentRead] = []


class ClaimStats(CamelModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    average_resolution_time: float
    resolved_this_month: int
    open_claims: int
