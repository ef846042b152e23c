from __future__ import annotations

import pytest

from owls_portal.core.tiers import SubscriptionTier, parse_tier
from owls_portal.services.oauth.providers.discord import ExchangeResult
from owls_portal.services.oauth.state import (
    CallbackParams,
    CsrfError,
    ProtocolError,
    Success,
    UpstreamError,
    decide_callback,
    new_state_token,
    plan_redirect,
    states_match,
)

ORIGIN = "https://owlsinsight.com"


class RecordingExchange:
    def __init__(self, result: ExchangeResult) -> None:
        self.result = result
        self.codes: list[str] = []

    def __call__(self, code: str) -> ExchangeResult:
        self.codes.append(code)
        return self.result


def test_state_tokens_are_long_and_unique() -> None:
    tokens = {new_state_token() for _ in range(50)}
    assert len(tokens) == 50
    # 32 random bytes, url-safe base64 without padding
    assert all(len(token) == 43 for token in tokens)


def test_states_match_requires_exact_equality() -> None:
    assert states_match("abc123", "abc123")
    assert not states_match("abc124", "abc123")
    assert not states_match("abc12", "abc123")
    assert not states_match("", "abc123")


def test_states_match_uses_constant_time_compare(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[bytes, bytes]] = []

    def _fake_compare(left: bytes, right: bytes) -> bool:
        calls.append((left, right))
        return left == right

    monkeypatch.setattr("owls_portal.services.oauth.state.hmac.compare_digest", _fake_compare)

    assert states_match("same-len-a", "same-len-b") is False
    assert calls == [(b"same-len-a", b"same-len-b")]

    calls.clear()
    assert states_match("short", "much-longer") is False
    assert calls == []


def test_provider_error_wins_over_everything() -> None:
    exchange = RecordingExchange(ExchangeResult(ok=True, token="t"))
    outcome = decide_callback(CallbackParams(code="c", state="s", error="access_denied"), "s", exchange)
    assert outcome == ProtocolError("authorization_denied")
    assert exchange.codes == []


@pytest.mark.parametrize(
    "params",
    [CallbackParams(state="s"), CallbackParams(code="c"), CallbackParams(code="", state="s"), CallbackParams()],
)
def test_missing_code_or_state(params: CallbackParams) -> None:
    exchange = RecordingExchange(ExchangeResult(ok=True))
    assert decide_callback(params, "s", exchange) == ProtocolError("missing_params")
    assert exchange.codes == []


@pytest.mark.parametrize("stored", [None, ""])
def test_missing_stored_state_is_expired(stored: str | None) -> None:
    exchange = RecordingExchange(ExchangeResult(ok=True))
    outcome = decide_callback(CallbackParams(code="c", state="s"), stored, exchange)
    assert outcome == CsrfError("expired_state")
    assert exchange.codes == []


def test_mismatched_state_is_invalid() -> None:
    exchange = RecordingExchange(ExchangeResult(ok=True))
    outcome = decide_callback(CallbackParams(code="c", state="state-b"), "state-a", exchange)
    assert outcome == CsrfError("invalid_state")
    assert exchange.codes == []


def test_verified_state_exchanges_the_code() -> None:
    exchange = RecordingExchange(ExchangeResult(ok=True, token="jwt1"))
    outcome = decide_callback(CallbackParams(code="the-code", state="s1"), "s1", exchange)
    assert outcome == Success(token="jwt1")
    assert exchange.codes == ["the-code"]


def test_failed_exchange_carries_upstream_code() -> None:
    exchange = RecordingExchange(ExchangeResult(ok=False, error="invalid_grant"))
    outcome = decide_callback(CallbackParams(code="c", state="s"), "s", exchange)
    assert outcome == UpstreamError("invalid_grant")


def test_failed_exchange_without_code_defaults() -> None:
    exchange = RecordingExchange(ExchangeResult(ok=False))
    outcome = decide_callback(CallbackParams(code="c", state="s"), "s", exchange)
    assert outcome == UpstreamError("discord_auth_failed")


def test_outcome_kinds() -> None:
    assert Success().kind == "success"
    assert ProtocolError("x").kind == "protocol_error"
    assert CsrfError("x").kind == "csrf_error"
    assert UpstreamError("x").kind == "upstream_error"


def test_plan_redirect_success() -> None:
    assert plan_redirect(Success(token="t"), ORIGIN) == f"{ORIGIN}/dashboard"
    assert plan_redirect(Success(), ORIGIN, SubscriptionTier.ROOKIE) == f"{ORIGIN}/dashboard?start_checkout=rookie"


@pytest.mark.parametrize(
    "outcome, expected",
    [
        (ProtocolError("missing_params"), "/login?error=missing_params"),
        (CsrfError("invalid_state"), "/login?error=invalid_state"),
        (UpstreamError("service_unavailable"), "/login?error=service_unavailable"),
        (UpstreamError("bad thing/happened"), "/login?error=bad%20thing%2Fhappened"),
    ],
)
def test_plan_redirect_errors(outcome, expected: str) -> None:
    assert plan_redirect(outcome, ORIGIN, SubscriptionTier.MVP) == f"{ORIGIN}{expected}"


def test_parse_tier() -> None:
    assert parse_tier("mvp") is SubscriptionTier.MVP
    assert parse_tier("bench") is SubscriptionTier.BENCH
    assert parse_tier("rookie") is SubscriptionTier.ROOKIE
    assert parse_tier("MVP") is None
    assert parse_tier("bogus") is None
    assert parse_tier("") is None
    assert parse_tier(None) is None
