"""Public origin resolution for absolute redirects.

Forwarded headers are attacker-controlled, so the origin built from them is
only trusted when it appears in ``Settings.allowed_origins``. Anything else
collapses to ``Settings.canonical_origin``.
"""
from __future__ import annotations

import re
from typing import Mapping

from owls_portal.core.config import Settings

_LOCAL_HOST_PATTERN = re.compile(r"^(localhost|127\.0\.0\.1|0\.0\.0\.0)(:|$)")


def _first_value(raw: str | None) -> str | None:
    if not raw:
        return None
    candidate = raw.split(",", 1)[0].strip()
    return candidate or None


def resolve_origin(headers: Mapping[str, str], settings: Settings) -> str:
    host = _first_value(headers.get("x-forwarded-host")) or _first_value(headers.get("host"))
    if not host:
        return settings.canonical_origin
    proto = _first_value(headers.get("x-forwarded-proto"))
    if proto is None:
        proto = "http" if _LOCAL_HOST_PATTERN.match(host) else "https"
    candidate = f"{proto.lower()}://{host.lower()}"
    if candidate in settings.allowed_origins:
        return candidate
    return settings.canonical_origin


__all__ = ["resolve_origin"]
