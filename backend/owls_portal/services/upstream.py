"""Calls into the upstream API server.

Every request carries the shared ``X-Internal-Auth`` secret. Browser cookies
are relayed verbatim when the caller passes them. ``upstream_timeout_seconds``
is an overall deadline for the whole exchange, body included: the response is
streamed and abandoned once the deadline passes, so an upstream that drips
bytes cannot hold a request open. Transport failures, an exceeded deadline and
bodies that are not a JSON object surface as ``UpstreamUnavailableError``.
"""
from __future__ import annotations

import json as json_lib
import time
from dataclasses import dataclass
from typing import Any

import httpx

from owls_portal.core.config import Settings
from owls_portal.core.http import get_http_client
from owls_portal.logging import get_logger
from owls_portal.observability.metrics import track_upstream_call

INTERNAL_AUTH_HEADER = "X-Internal-Auth"

logger = get_logger().bind(component="upstream")


class UpstreamUnavailableError(Exception):
    """Raised when the upstream cannot be reached in time or answers with an unreadable body."""


class UpstreamDeadlineExceeded(UpstreamUnavailableError):
    pass


@dataclass(slots=True)
class UpstreamResponse:
    status_code: int
    payload: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def build_upstream_url(path: str, settings: Settings) -> str:
    return f"{settings.api_base_url}/{path.lstrip('/')}"


def request_timeout(settings: Settings) -> httpx.Timeout:
    total = settings.upstream_timeout_seconds
    return httpx.Timeout(total, connect=min(settings.httpx_connect_timeout, total))


def _read_body(response: httpx.Response, deadline: float) -> bytes:
    body = bytearray()
    for chunk in response.iter_bytes():
        body.extend(chunk)
        if time.perf_counter() > deadline:
            raise UpstreamDeadlineExceeded("Upstream response exceeded the deadline")
    return bytes(body)


def request_upstream(
    method: str,
    path: str,
    settings: Settings,
    *,
    json: Any | None = None,
    cookie: str | None = None,
) -> UpstreamResponse:
    headers = {
        "Content-Type": "application/json",
        INTERNAL_AUTH_HEADER: settings.internal_auth_secret,
    }
    if cookie:
        headers["Cookie"] = cookie

    url = build_upstream_url(path, settings)
    client = get_http_client(settings)
    start = time.perf_counter()
    deadline = start + settings.upstream_timeout_seconds
    try:
        with client.stream(method, url, json=json, headers=headers, timeout=request_timeout(settings)) as response:
            if time.perf_counter() > deadline:
                raise UpstreamDeadlineExceeded("Upstream response headers exceeded the deadline")
            content = _read_body(response, deadline)
    except (httpx.TimeoutException, UpstreamDeadlineExceeded) as exc:
        track_upstream_call(settings, path, "timeout", time.perf_counter() - start)
        logger.warning("upstream_timeout", method=method, endpoint=path, timeout=settings.upstream_timeout_seconds)
        raise UpstreamDeadlineExceeded("Upstream request timed out") from exc
    except httpx.HTTPError as exc:
        track_upstream_call(settings, path, "error", time.perf_counter() - start)
        logger.warning("upstream_transport_error", method=method, endpoint=path, error=exc.__class__.__name__)
        raise UpstreamUnavailableError("Upstream request failed") from exc

    track_upstream_call(settings, path, response.status_code, time.perf_counter() - start)
    try:
        payload = json_lib.loads(content)
    except ValueError as exc:
        logger.warning("upstream_invalid_body", method=method, endpoint=path, status=response.status_code)
        raise UpstreamUnavailableError("Upstream returned a non-JSON body") from exc
    if not isinstance(payload, dict):
        logger.warning(
            "upstream_unexpected_body",
            method=method,
            endpoint=path,
            status=response.status_code,
            body_type=type(payload).__name__,
        )
        raise UpstreamUnavailableError("Upstream returned an unexpected body")

    logger.debug("upstream_response", method=method, endpoint=path, status=response.status_code)
    return UpstreamResponse(status_code=response.status_code, payload=payload)


__all__ = [
    "INTERNAL_AUTH_HEADER",
    "UpstreamDeadlineExceeded",
    "UpstreamResponse",
    "UpstreamUnavailableError",
    "build_upstream_url",
    "request_timeout",
    "request_upstream",
]
