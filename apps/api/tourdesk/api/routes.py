from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from tourdesk.authz.api import admin_router, me_router
from tourdesk.core.config import get_settings
from tourdesk.core.rbac import require_read
from tourdesk.crm.api import routers as crm_routers
from tourdesk.metrics import generate_metrics_payload, metrics_content_type
from tourdesk.platform.security.context import Principal

router = APIRouter()
router.include_router(admin_router)
router.include_router(me_router)
for crm_router in crm_routers:
    router.include_router(crm_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


def _metrics_enabled() -> None:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")


@router.get("/metrics", tags=["system"], dependencies=[Depends(_metrics_enabled)])
def metrics(_principal: Principal = Depends(require_read("settings"))) -> Response:
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
