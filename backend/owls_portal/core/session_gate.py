"""Cookie-presence gate in front of the dashboard and the login page.

Only the presence of the session cookie is checked here; whether the token is
still valid is the upstream's call (see ``GET /api/auth/me``).
"""
from __future__ import annotations

from typing import Awaitable, Callable, Iterable
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from owls_portal.core.config import Settings
from owls_portal.core.cookies import SESSION_COOKIE_NAME
from owls_portal.core.origin import resolve_origin


def _matches(path: str, prefixes: Iterable[str]) -> bool:
    for prefix in prefixes:
        base = prefix.rstrip("/") or "/"
        if path == base or path.startswith(f"{base}/"):
            return True
    return False


def plan_gate_redirect(path: str, has_session: bool, origin: str, settings: Settings) -> str | None:
    if not has_session and _matches(path, settings.protected_paths):
        return f"{origin}/login?{urlencode({'redirect': path})}"
    if has_session and _matches(path, settings.auth_paths):
        return f"{origin}/dashboard"
    return None


class SessionGateMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        settings: Settings = request.app.state.settings
        has_session = bool(request.cookies.get(SESSION_COOKIE_NAME))
        origin = resolve_origin(request.headers, settings)
        target = plan_gate_redirect(request.url.path, has_session, origin, settings)
        if target is None:
            return await call_next(request)
        return RedirectResponse(target, status_code=302)


__all__ = ["SessionGateMiddleware", "plan_gate_redirect"]
