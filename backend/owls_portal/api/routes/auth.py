from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from owls_portal.api.deps import get_app_settings
from owls_portal.core.config import Settings
from owls_portal.core.cookies import SESSION_COOKIE_NAME, expire_cookie, set_session_cookie
from owls_portal.core.errors import service_unavailable_exception
from owls_portal.logging import get_logger
from owls_portal.services.upstream import UpstreamUnavailableError, request_upstream

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger().bind(component="auth.proxy")


@router.post("/login", summary="Password login through the upstream API")
def login_user(
    payload: dict[str, Any] = Body(...),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    try:
        upstream = request_upstream("POST", "/auth/login", settings, json=payload)
    except UpstreamUnavailableError as exc:
        logger.warning("login_proxy_failed", reason=str(exc))
        raise service_unavailable_exception() from exc

    response = JSONResponse(upstream.payload, status_code=upstream.status_code)
    token = upstream.payload.get("token")
    # Error bodies never set a session, even if they happen to carry a token.
    if upstream.ok and isinstance(token, str) and token:
        set_session_cookie(response, token, settings)
        logger.info("user_authenticated", via="password")
    return response


@router.post("/logout", summary="Clear the session cookie")
def logout_user(request: Request, settings: Settings = Depends(get_app_settings)) -> JSONResponse:
    try:
        request_upstream("POST", "/auth/logout", settings, cookie=request.headers.get("cookie"))
    except UpstreamUnavailableError as exc:
        logger.info("logout_upstream_skipped", reason=str(exc))

    response = JSONResponse({"success": True})
    expire_cookie(response, SESSION_COOKIE_NAME, settings)
    return response


@router.get("/me", summary="Current user as seen by the upstream API")
def read_current_user(request: Request, settings: Settings = Depends(get_app_settings)) -> JSONResponse:
    try:
        upstream = request_upstream("GET", "/auth/me", settings, cookie=request.headers.get("cookie"))
    except UpstreamUnavailableError as exc:
        logger.warning("auth_me_proxy_failed", reason=str(exc))
        raise service_unavailable_exception() from exc

    response = JSONResponse(upstream.payload, status_code=upstream.status_code)
    if upstream.status_code == 401:
        # A dead token would otherwise keep the gate bouncing /login back to /dashboard.
        expire_cookie(response, SESSION_COOKIE_NAME, settings)
    return response
