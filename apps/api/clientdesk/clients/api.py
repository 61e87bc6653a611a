from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.clients.schemas import (
    ClientCreate,
    ClientDetailRead,
    ClientIncomeRead,
    ClientRead,
    ClientSortField,
    ClientUpdate,
    IncomeReportRead,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from clientdesk.clients.service import client_service
from clientdesk.common.pagination import PageParams, page_params
from clientdesk.core.database import get_db
from clientdesk.core.rbac import admin_only, manager_only, staff_only
from clientdesk.core.schemas import ApiResponse, MessageResponse, PagedResponse, ok, paged


router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", response_model=PagedResponse[ClientRead])
def list_clients(
    params: PageParams = Depends(page_params),
    is_active: bool | None = Query(default=None, alias="isActive"),
    sort_by: ClientSortField = Query(default="createdAt", alias="sortBy"),
    db: Session = Depends(get_db),
    _: Identity = Depends(staff_only),
) -> PagedResponse[ClientRead]:
    rows, meta = client_service.list_clients(db, params, is_active=is_active, sort_by=sort_by)
    return paged(rows, meta, "Clients retrieved")


@router.get("/income-report", response_model=ApiResponse[IncomeReportRead])
def income_report(db: Session = Depends(get_db), _: Identity = Depends(manager_only)) -> ApiResponse[IncomeReportRead]:
    return ok(client_service.income_report(db), "Income report retrieved")


@router.get("/{client_id}", response_model=ApiResponse[ClientDetailRead])
def get_client(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(staff_only),
) -> ApiResponse[ClientDetailRead]:
    return ok(client_service.get_client(db, identity, client_id), "Client retrieved")


@router.get("/{client_id}/income", response_model=ApiResponse[ClientIncomeRead])
def client_income(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: Identity = Depends(manager_only),
) -> ApiResponse[ClientIncomeRead]:
    return ok(client_service.client_income(db, client_id), "Client income retrieved")


@router.post("", response_model=ApiResponse[ClientRead], status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClientRead]:
    return ok(client_service.create_client(db, identity, payload), "Client created")


@router.put("/{client_id}", response_model=ApiResponse[ClientRead])
def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClientRead]:
    return ok(client_service.update_client(db, identity, client_id, payload), "Client updated")


@router.delete("/{client_id}", response_model=MessageResponse)
def delete_client(client_id: uuid.UUID, db: Session = Depends(get_db), identity: Identity = Depends(admin_only)) -> MessageResponse:
    client_service.deactivate_client(db, identity, client_id)
    return MessageResponse(message="Client deactivated")


@router.post("/{client_id}/products", response_model=ApiResponse[ClientDetailRead], status_code=status.HTTP_201_CREATED)
def add_client_product(
    client_id: uuid.UUID,
    payload: SubscriptionCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClientDetailRead]:
    return ok(client_service.add_subscription(db, identity, client_id, payload), "Product added to client")


@router.put("/{client_id}/products/{product_id}", response_model=ApiResponse[ClientDetailRead])
def update_client_product(
    client_id: uuid.UUID,
    product_id: uuid.UUID,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClientDetailRead]:
    return ok(client_service.update_subscription(db, identity, client_id, product_id, payload), "Subscription updated")


@router.delete("/{client_id}/products/{product_id}", response_model=ApiResponse[ClientDetailRead])
def remove_client_product(
    client_id: uuid.UUID,
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(manager_only),
) -> ApiResponse[ClientDetailRead]:
    return ok(client_service.remove_subscription(db, identity, client_id, product_id), "Product removed from client")


@router.post("/{client_id}/create-portal-account", response_model=ApiResponse[ClientRead], status_code=status.HTTP_201_CREATED)
def create_portal_account(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(admin_only),
) -> ApiResponse[ClientRead]:
    return ok(client_service.create_portal_account(db, identity, client_id), "Portal account created")
