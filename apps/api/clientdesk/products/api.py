from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.rbac import admin_only, staff_only
from clientdesk.core.schemas import ApiResponse, MessageResponse, PagedResponse, ok, paged
from clientdesk.products.schemas import (
    BillingCycle,
    ProductCreate,
    ProductDetailRead,
    ProductRead,
    ProductSortField,
    ProductStats,
    ProductUpdate,
)
from clientdesk.products.service import product_service


router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=PagedResponse[ProductRead])
def list_products(
    params: PageParams = Depends(page_params),
    is_active: bool | None = Query(default=None, alias="isActive"),
    billing_cycle: BillingCycle | None = Query(default=None, alias="billingCycle"),
    sort_by: ProductSortField = Query(default="name", alias="sortBy"),
    db: Session = Depends(get_db),
    _: Identity = Depends(staff_only),
) -> PagedResponse[ProductRead]:
    rows, meta = product_service.list_products(db, params, is_active=is_active, billing_cycle=billing_cycle, sort_by=sort_by)
    return paged(rows, meta, "Products retrieved")


@router.get("/active", response_model=ApiResponse[list[ProductRead]])
def list_active_products(db: Session = Depends(get_db), _: Identity = Depends(staff_only)) -> ApiResponse[list[ProductRead]]:
    return ok(product_service.list_active(db), "Active products retrieved")


@router.get("/{product_id}", response_model=ApiResponse[ProductDetailRead])
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(staff_only)) -> ApiResponse[ProductDetailRead]:
    return ok(product_service.get_product(db, product_id), "Product retrieved")


@router.get("/{product_id}/stats", response_model=ApiResponse[ProductStats])
def product_stats(product_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(staff_only)) -> ApiResponse[ProductStats]:
    return ok(product_service.usage_stats(db, product_id), "Product statistics retrieved")


@router.post("", response_model=ApiResponse[ProductRead], status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> ApiResponse[ProductRead]:
    return ok(product_service.create_product(db, payload), "Product created")


@router.put("/{product_id}", response_model=ApiResponse[ProductRead])
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    _: Identity = Depends(admin_only),
) -> ApiResponse[ProductRead]:
    return ok(product_service.update_product(db, product_id, payload), "Product updated")


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(product_id: uuid.UUID, db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> MessageResponse:
    product_service.deactivate_product(db, product_id)
    return MessageResponse(message="Product deactivated")
