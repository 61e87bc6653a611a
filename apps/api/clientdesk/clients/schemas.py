from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field

from clientdesk.core.schemas import CamelModel


ClientSortField = Literal["createdAt", "firstName", "lastName", "email", "company"]


class ClientCreate(CamelModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_id: str | None = None


class ClientUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_id: str | None = None
    is_active: bool | None = None


class SubscriptionCreate(CamelModel):
    product_id: UUID
    quantity: int = Field(default=1, ge=1)
    custom_price: Decimal | None = Field(default=None, gt=0)
    start_date: datetime | None = None
    end_date: datetime | None = None


class SubscriptionUpdate(CamelModel):
    quantity: int | None = Field(default=None, ge=1)
    custom_price: Decimal | None = Field(default=None, gt=0)
    is_active: bool | None = None
    end_date: datetime | None = None


class ClientRead(CamelModel):
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
    tax_id: str | None
    is_active: bool
    user_id: UUID | None
    converted_from_id: UUID | None
    created_at: datetime
    updated_at: datetime
    has_portal_access: bool = False


class SubscriptionProductRead(CamelModel):
    id: UUID
    name: str
    price: Decimal
    billing_cycle: str
    is_active: bool


class SubscriptionRead(CamelModel):
    id: UUID
    client_id: UUID
    product_id: UUID
    quantity: int
    custom_price: Decimal | None
    start_date: datetime
    end_date: datetime | None
    is_active: bool
    product: SubscriptionProductRead


class ClientDetailRead(ClientRead):
    subscriptions: list[SubscriptionRead] = []


class IncomeLineRead(CamelModel):
    product_id: UUID
    product_name: str
    price: float
    quantity: int
    billing_cycle: str
    total_monthly: float


class ClientIncomeRead(CamelModel):
    client_id: UUID
    client_name: str
    monthly_income: float
    yearly_income: float
    products: list[IncomeLineRead]


class TopClientRead(CamelModel):
    client_id: UUID
    client_name: str
    total_monthly: float


class ProductRevenueRead(CamelModel):
    product_id: UUID
    product_name: str
    client_count: int
    total_monthly_revenue: float


class IncomeReportRead(CamelModel):
    total_monthly_income: float
    total_yearly_income: float
    client_count: int
    active_subscriptions: int
    top_clients: list[TopClientRead]
    product_breakdown: list[ProductRevenueRead]
