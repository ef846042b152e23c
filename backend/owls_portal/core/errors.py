from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    SUCCESS = "SUCCESS"
    VALIDATION_ERROR = "V001"
    NOT_AUTHENTICATED = "A001"
    NOT_FOUND = "N001"
    BAD_REQUEST = "B001"
    OAUTH_NOT_CONFIGURED = "O001"
    UPSTREAM_UNAVAILABLE = "U001"


class OAuthErrorCode(str, Enum):
    """Fixed error codes carried to ``/login?error=...`` by the callback."""

    AUTHORIZATION_DENIED = "authorization_denied"
    MISSING_PARAMS = "missing_params"
    EXPIRED_STATE = "expired_state"
    INVALID_STATE = "invalid_state"
    DISCORD_AUTH_FAILED = "discord_auth_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"


def create_error_detail(code: ErrorCode | str, message: str, data: Any | None = None) -> dict[str, Any | None]:
    code_value = code.value if isinstance(code, ErrorCode) else str(code)
    return {"code": code_value, "error": message, "data": data}


def http_exception(
    status_code: int,
    code: ErrorCode | str,
    message: str,
    *,
    data: Any | None = None,
    headers: dict[str, str] | None = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=create_error_detail(code, message, data),
        headers=headers,
    )


def service_unavailable_exception() -> HTTPException:
    return http_exception(status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.UPSTREAM_UNAVAILABLE, "Service unavailable")
