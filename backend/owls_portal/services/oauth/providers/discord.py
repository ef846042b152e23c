from __future__ import annotations

from dataclasses import dataclass

import httpx

from owls_portal.core.config import Settings
from owls_portal.core.errors import OAuthErrorCode
from owls_portal.logging import get_logger
from owls_portal.services.upstream import UpstreamUnavailableError, request_upstream

logger = get_logger().bind(component="oauth.discord")


@dataclass(frozen=True, slots=True)
class ExchangeResult:
    ok: bool
    token: str | None = None
    error: str | None = None


class DiscordOAuthProvider:
    name = "discord"

    def build_authorize_url(self, state: str, settings: Settings) -> str:
        client_id = settings.discord_client_id
        if not client_id:
            raise ValueError("Discord OAuth client id not configured")
        params = {
            "client_id": client_id,
            "redirect_uri": settings.discord_redirect_uri,
            "response_type": "code",
            "scope": " ".join(settings.discord_scopes),
            "state": state,
            "prompt": "consent",
        }
        query = httpx.QueryParams(params)
        logger.debug(
            "discord_authorize_url",
            redirect_uri=settings.discord_redirect_uri,
            scopes=settings.discord_scopes,
        )
        return f"{settings.discord_authorize_url}?{query}"

    def exchange_code(self, code: str, settings: Settings) -> ExchangeResult:
        """Hand the authorization code to the upstream API, which talks to Discord.

        The upstream owns the client secret and the user store; this side only
        learns whether the exchange worked and, if so, the session token.
        """
        try:
            upstream = request_upstream(
                "POST",
                f"/auth/{self.name}/callback",
                settings,
                json={"code": code, "redirectUri": settings.discord_redirect_uri},
            )
        except UpstreamUnavailableError:
            return ExchangeResult(ok=False, error=OAuthErrorCode.SERVICE_UNAVAILABLE.value)

        if not upstream.ok:
            error = upstream.payload.get("error")
            if not isinstance(error, str) or not error.strip():
                error = OAuthErrorCode.DISCORD_AUTH_FAILED.value
            logger.info("discord_exchange_rejected", status=upstream.status_code, error=error)
            return ExchangeResult(ok=False, error=error.strip())

        token = upstream.payload.get("token")
        if not isinstance(token, str) or not token:
            token = None
        logger.debug("discord_exchange_success", has_token=token is not None)
        return ExchangeResult(ok=True, token=token)


discord_provider = DiscordOAuthProvider()
