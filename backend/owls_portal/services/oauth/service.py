from __future__ import annotations

from typing import Mapping

from fastapi import status
from fastapi.responses import RedirectResponse

from owls_portal.core.config import Settings
from owls_portal.core.cookies import (
    STATE_COOKIE_NAME,
    TIER_COOKIE_NAME,
    clear_oauth_cookies,
    set_session_cookie,
    set_transient_cookie,
)
from owls_portal.core.errors import ErrorCode, OAuthErrorCode, http_exception
from owls_portal.core.origin import resolve_origin
from owls_portal.core.tiers import parse_tier
from owls_portal.logging import get_logger
from owls_portal.observability.metrics import record_oauth_callback
from owls_portal.services.oauth.providers.discord import ExchangeResult, discord_provider
from owls_portal.services.oauth.state import (
    CallbackParams,
    Success,
    decide_callback,
    new_state_token,
    plan_redirect,
)

logger = get_logger().bind(component="oauth.service")


def start_authorization(tier_param: str | None, settings: Settings) -> RedirectResponse:
    if not settings.discord_client_id:
        logger.error("discord_oauth_not_configured")
        raise http_exception(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            ErrorCode.OAUTH_NOT_CONFIGURED,
            "Discord OAuth not configured",
        )

    state = new_state_token()
    url = discord_provider.build_authorize_url(state=state, settings=settings)
    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    set_transient_cookie(response, STATE_COOKIE_NAME, state, settings)

    tier = parse_tier(tier_param)
    if tier is not None:
        set_transient_cookie(response, TIER_COOKIE_NAME, tier.value, settings)
    logger.info("discord_oauth_started", tier=tier.value if tier else None, tier_ignored=bool(tier_param) and tier is None)
    return response


def _exchange_with(settings: Settings):
    def _exchange(code: str) -> ExchangeResult:
        try:
            return discord_provider.exchange_code(code, settings)
        except Exception:
            logger.exception("discord_code_exchange_failed")
            return ExchangeResult(ok=False, error=OAuthErrorCode.SERVICE_UNAVAILABLE.value)

    return _exchange


def complete_callback(
    params: CallbackParams,
    cookies: Mapping[str, str],
    headers: Mapping[str, str],
    settings: Settings,
) -> RedirectResponse:
    outcome = decide_callback(params, cookies.get(STATE_COOKIE_NAME), _exchange_with(settings))
    origin = resolve_origin(headers, settings)
    tier = parse_tier(cookies.get(TIER_COOKIE_NAME)) if isinstance(outcome, Success) else None

    response = RedirectResponse(plan_redirect(outcome, origin, tier), status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    if isinstance(outcome, Success):
        if outcome.token:
            set_session_cookie(response, outcome.token, settings)
        logger.info(
            "discord_callback_completed",
            session_issued=bool(outcome.token),
            checkout_tier=tier.value if tier else None,
        )
        record_oauth_callback(settings, discord_provider.name, outcome.kind, None)
    else:
        logger.warning("discord_callback_rejected", outcome=outcome.kind, reason=outcome.code)
        record_oauth_callback(settings, discord_provider.name, outcome.kind, outcome.code)

    clear_oauth_cookies(response, settings)
    return response


__all__ = ["complete_callback", "start_authorization"]
