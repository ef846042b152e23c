from __future__ import annotations

from starlette.responses import Response

from owls_portal.core.config import Settings

SESSION_COOKIE_NAME = "token"
STATE_COOKIE_NAME = "oauth_state"
TIER_COOKIE_NAME = "oauth_tier"


def set_transient_cookie(response: Response, key: str, value: str, settings: Settings) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=settings.oauth_state_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_max_age_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def expire_cookie(response: Response, key: str, settings: Settings) -> None:
    response.delete_cookie(
        key=key,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_oauth_cookies(response: Response, settings: Settings) -> None:
    expire_cookie(response, STATE_COOKIE_NAME, settings)
    expire_cookie(response, TIER_COOKIE_NAME, settings)


__all__ = [
    "SESSION_COOKIE_NAME",
    "STATE_COOKIE_NAME",
    "TIER_COOKIE_NAME",
    "clear_oauth_cookies",
    "expire_cookie",
    "set_session_cookie",
    "set_transient_cookie",
]
