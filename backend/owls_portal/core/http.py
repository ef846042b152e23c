"""The one outbound ``httpx.Client`` used to reach the upstream API server.

Built lazily from settings on first use and shared across the threadpool.
Redirects are never followed: an upstream 3xx is an answer to relay, not a hop.
"""
from __future__ import annotations

import threading

import httpx

from owls_portal.core.config import Settings, get_settings
from owls_portal.logging import get_logger

_logger = get_logger().bind(component="http_client")


def build_upstream_client(settings: Settings) -> httpx.Client:
    timeout = httpx.Timeout(settings.upstream_timeout_seconds, connect=settings.httpx_connect_timeout)
    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )
    _logger.debug(
        "http_client_created",
        api_base_url=settings.api_base_url,
        upstream_timeout=settings.upstream_timeout_seconds,
        max_connections=settings.httpx_max_connections,
    )
    return httpx.Client(
        timeout=timeout,
        limits=limits,
        follow_redirects=False,
        headers={"Accept": "application/json", "User-Agent": f"owls-portal/{settings.app_version}"},
    )


class _ClientHolder:
    def __init__(self) -> None:
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()

    def get(self, settings: Settings) -> httpx.Client:
        client = self._client
        if client is not None:
            return client
        with self._lock:
            if self._client is None:
                self._client = build_upstream_client(settings)
            return self._client

    def swap(self, client: httpx.Client | None) -> None:
        with self._lock:
            previous, self._client = self._client, client
        if previous is not None and previous is not client:
            previous.close()


_holder = _ClientHolder()


def get_http_client(settings: Settings | None = None) -> httpx.Client:
    """Return the shared client, building it from ``settings`` on first use."""
    return _holder.get(settings or get_settings())


def close_http_client() -> None:
    _holder.swap(None)


def override_http_client(client: httpx.Client | None) -> None:
    """Install ``client`` as the shared client; tests pass one backed by ``httpx.MockTransport``."""
    _holder.swap(client)


__all__ = ["build_upstream_client", "close_http_client", "get_http_client", "override_http_client"]
