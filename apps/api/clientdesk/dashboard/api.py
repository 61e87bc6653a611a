from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clientdesk.authz.policy import Identity
from clientdesk.core.database import get_db
from clientdesk.core.rbac import admin_only, client_only, manager_only, require_authenticated, staff_only
from clientdesk.core.schemas import ApiResponse, ok
from clientdesk.dashboard.schemas import ClientDashboard, StaffDashboard
from clientdesk.dashboard.service import dashboard_service


router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/admin", response_model=ApiResponse[StaffDashboard])
def admin_dashboard(db: Session = Depends(get_db), _: Identity = Depends(admin_only)) -> ApiResponse[StaffDashboard]:
    return ok(dashboard_service.admin(db), "Dashboard retrieved")


@router.get("/supervisor", response_model=ApiResponse[StaffDashboard])
def supervisor_dashboard(db: Session = Depends(get_db), _: Identity = Depends(manager_only)) -> ApiResponse[StaffDashboard]:
    return ok(dashboard_service.supervisor(db), "Dashboard retrieved")


@router.get("/operator", response_model=ApiResponse[StaffDashboard])
def operator_dashboard(db: Session = Depends(get_db), identity: Identity = Depends(staff_only)) -> ApiResponse[StaffDashboard]:
    return ok(dashboard_service.operator(db, identity), "Dashboard retrieved")


@router.get("/client", response_model=ApiResponse[ClientDashboard])
def client_dashboard(db: Session = Depends(get_db), identity: Identity = Depends(client_only)) -> ApiResponse[ClientDashboard]:
    return ok(dashboard_service.client(db, identity), "Dashboard retrieved")


@router.get("", response_model=ApiResponse[StaffDashboard | ClientDashboard])
def dashboard(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_authenticated),
) -> ApiResponse[StaffDashboard | ClientDashboard]:
    return ok(dashboard_service.for_identity(db, identity), "Dashboard retrieved")
