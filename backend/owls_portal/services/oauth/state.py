"""OAuth CSRF state and the callback decision.

The in-flight flow lives entirely in two short-lived cookies. Given what the
provider sent back and what the browser still holds, ``decide_callback``
returns one of four outcomes and ``plan_redirect`` turns it into the final
browser destination. Neither function touches HTTP machinery.
"""
from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from typing import Callable, Union
from urllib.parse import quote

from owls_portal.core.errors import OAuthErrorCode
from owls_portal.core.tiers import SubscriptionTier
from owls_portal.services.oauth.providers.discord import ExchangeResult

STATE_TOKEN_BYTES = 32


@dataclass(frozen=True, slots=True)
class CallbackParams:
    code: str | None = None
    state: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class Success:
    token: str | None = None
    kind = "success"


@dataclass(frozen=True, slots=True)
class ProtocolError:
    code: str
    kind = "protocol_error"


@dataclass(frozen=True, slots=True)
class CsrfError:
    code: str
    kind = "csrf_error"


@dataclass(frozen=True, slots=True)
class UpstreamError:
    code: str
    kind = "upstream_error"


CallbackOutcome = Union[Success, ProtocolError, CsrfError, UpstreamError]


def new_state_token() -> str:
    return secrets.token_urlsafe(STATE_TOKEN_BYTES)


def states_match(received: str, stored: str) -> bool:
    received_bytes = received.encode("utf-8")
    stored_bytes = stored.encode("utf-8")
    # Length is not secret; only the content comparison has to be constant time.
    if len(received_bytes) != len(stored_bytes):
        return False
    return hmac.compare_digest(received_bytes, stored_bytes)


def decide_callback(
    params: CallbackParams,
    stored_state: str | None,
    exchange: Callable[[str], ExchangeResult],
) -> CallbackOutcome:
    if params.error:
        return ProtocolError(OAuthErrorCode.AUTHORIZATION_DENIED.value)
    if not params.code or not params.state:
        return ProtocolError(OAuthErrorCode.MISSING_PARAMS.value)
    if not stored_state:
        return CsrfError(OAuthErrorCode.EXPIRED_STATE.value)
    if not states_match(params.state, stored_state):
        return CsrfError(OAuthErrorCode.INVALID_STATE.value)

    result = exchange(params.code)
    if not result.ok:
        return UpstreamError(result.error or OAuthErrorCode.DISCORD_AUTH_FAILED.value)
    return Success(token=result.token)


def plan_redirect(outcome: CallbackOutcome, origin: str, tier: SubscriptionTier | None = None) -> str:
    if isinstance(outcome, Success):
        if tier is not None:
            return f"{origin}/dashboard?start_checkout={tier.value}"
        return f"{origin}/dashboard"
    return f"{origin}/login?error={quote(outcome.code, safe='')}"


__all__ = [
    "CallbackOutcome",
    "CallbackParams",
    "CsrfError",
    "ProtocolError",
    "Success",
    "UpstreamError",
    "decide_callback",
    "new_state_token",
    "plan_redirect",
    "states_match",
]
