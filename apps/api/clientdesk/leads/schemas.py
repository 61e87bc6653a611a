from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field

from clientdesk.core.schemas import CamelModel
from clientdesk.users.schemas import UserSummary


LeadStatus = Literal["NEW", "CONTACTED", "QUALIFIED", "CONVERTED", "LOST"]
LeadSortField = Literal["createdAt", "firstName", "lastName", "status", "estimatedValue"]


class LeadCreate(CamelModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: str | None = None
    company: str | None = None
    source: str | None = None
    notes: str | None = None
    estimated_value: Decimal | None = Field(default=None, gt=0)
    assigned_to_id: UUID | None = None


class LeadUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    source: str | None = None
    notes: str | None = None
    estimated_value: Decimal | None = Field(default=None, gt=0)


class LeadStatusUpdate(CamelModel):
    status: LeadStatus


class LeadAssign(CamelModel):
    assigned_to_id: UUID | None


class LeadConvert(CamelModel):
    create_portal_account: bool = False
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_id: str | None = None


class LeadRead(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None
    company: str | None
    source: str | None
    status: LeadStatus
    notes: str | None
    estimated_value: Decimal | None
    created_by_id: UUID
    assigned_to_id: UUID | None
    converted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    created_by: UserSummary | None = None
    assigned_to: UserSummary | None = None


class LeadConversionResult(CamelModel):
    lead: LeadRead
    client_id: UUID


class LeadStats(CamelModel):
    total: int
    by_status: dict[str, int]
    total_estimated_value: float
    conversion_rate: float
