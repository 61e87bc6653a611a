from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import Field

from clientdesk.core.schemas import CamelModel


BillingCycle = Literal["monthly", "yearly", "one-time"]
ProductSortField = Literal["createdAt", "name", "price"]


class ProductCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    billing_cycle: BillingCycle = "monthly"
    is_active: bool = True


class ProductUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    billing_cycle: BillingCycle | None = None
    is_active: bool | None = None


class ProductRead(CamelModel):
    id: UUID
    name: str
    description: str | None
    price: Decimal
    billing_cycle: BillingCycle
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductDetailRead(ProductRead):
    active_subscriptions: int


class ProductStats(CamelModel):
    active_clients: int
    total_clients: int
    monthly_revenue: float
