from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import Response

from owls_portal.api.deps import get_app_settings
from owls_portal.core.config import Settings
from owls_portal.observability.metrics import metrics_response

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def get_metrics(settings: Settings = Depends(get_app_settings)) -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="Metrics endpoint is disabled")
    return metrics_response()
