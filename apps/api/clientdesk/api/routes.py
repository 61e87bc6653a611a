from fastapi import APIRouter, Depends
from fastapi.responses import Response

from clientdesk.auth.api import router as auth_router
from clientdesk.authz.policy import Identity
from clientdesk.claims.api import router as claims_router
from clientdesk.clients.api import router as clients_router
from clientdesk.core.config import get_settings
from clientdesk.core.errors import NotFoundError
from clientdesk.core.rbac import admin_only
from clientdesk.dashboard.api import router as dashboard_router
from clientdesk.leads.api import router as leads_router
from clientdesk.metrics import generate_metrics_payload, metrics_content_type
from clientdesk.portal.api import router as portal_router
from clientdesk.products.api import router as products_router
from clientdesk.users.api import router as users_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(leads_router)
router.include_router(clients_router)
router.include_router(products_router)
router.include_router(claims_router)
router.include_router(dashboard_router)
router.include_router(portal_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(_: Identity = Depends(admin_only)) -> Response:
    if not get_settings().metrics_enabled:
        raise NotFoundError("Metrics are disabled")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
