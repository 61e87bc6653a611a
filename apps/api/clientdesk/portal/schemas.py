from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from clientdesk.core.schemas import CamelModel


class PortalProfileRead(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None
    company: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    country: str | None
    created_at: datetime


class PortalProfileUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class PortalProductRead(CamelModel):
    id: UUID
    name: str
    description: str | None
    price: Decimal
    billing_cycle: str


class PortalSubscriptionRead(CamelModel):
    id: UUID
    quantity: int
    custom_price: Decimal | None
    start_date: datetime
    end_date: datetime | None
    product: PortalProductRead
