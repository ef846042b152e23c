from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from owls_portal.api.deps import get_app_settings
from owls_portal.core.config import Settings
from owls_portal.services.oauth import service as oauth_service
from owls_portal.services.oauth.state import CallbackParams

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/discord", summary="Start Discord sign-in", response_class=RedirectResponse, status_code=302)
def start_discord_login(
    tier: str | None = None,
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    return oauth_service.start_authorization(tier, settings)


@router.get(
    "/discord/callback",
    summary="Complete Discord sign-in",
    response_class=RedirectResponse,
    status_code=307,
)
def complete_discord_login(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    params = CallbackParams(code=code, state=state, error=error)
    return oauth_service.complete_callback(params, request.cookies, request.headers, settings)
