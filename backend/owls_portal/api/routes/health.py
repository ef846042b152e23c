from fastapi import APIRouter, Depends

from owls_portal.api.deps import get_app_settings
from owls_portal.api.response import Envelope, HealthStatus, success_response
from owls_portal.core.config import Settings

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Liveness probe", response_model=Envelope[HealthStatus])
def healthz(settings: Settings = Depends(get_app_settings)) -> dict:
    status = HealthStatus(
        status="ok",
        version=settings.app_version,
        environment=settings.app_env,
        discord_configured=bool(settings.discord_client_id),
    )
    return success_response(status)
