"""structlog setup for the portal.

Auth traffic is full of credentials: OAuth state and codes in query strings,
session tokens in cookies, the internal secret in upstream headers. Two
processors keep them out of the output. ``_mask_sensitive_values`` replaces
any mapping entry whose key is listed in ``REDACT_FIELDS``;
``_scrub_query_credentials`` rewrites ``state=``/``code=``/``token=`` pairs
inside free-form strings such as logged URLs.
"""
import logging
import re
import sys
from typing import Any, Awaitable, Callable
from uuid import uuid4

import structlog
from structlog import contextvars
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from owls_portal.core.config import get_settings

REQUEST_ID_HEADER = "X-Request-ID"
MAX_LOG_VALUE_LENGTH = 2048
TRUNCATION_SUFFIX = "...(truncated)"
_MAX_MASK_DEPTH = 4
_QUERY_CREDENTIAL_PATTERN = re.compile(r"(?i)\b(state|code|token)=([^&\s;\"']+)")


def _redaction_rules() -> tuple[frozenset[str], str]:
    settings = get_settings()
    return frozenset(entry.lower() for entry in settings.redact_fields), settings.redaction_placeholder


def _mask_sensitive_values(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    redacted_keys, placeholder = _redaction_rules()

    def _mask(value: Any, depth: int) -> Any:
        if depth > _MAX_MASK_DEPTH:
            return value
        if isinstance(value, dict):
            return {
                key: placeholder
                if isinstance(key, str) and key.lower() in redacted_keys
                else _mask(item, depth + 1)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(_mask(item, depth + 1) for item in value)
        return value

    return _mask(event_dict, 0)


def _scrub_query_credentials(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    _, placeholder = _redaction_rules()
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and "=" in value:
            event_dict[key] = _QUERY_CREDENTIAL_PATTERN.sub(lambda match: f"{match.group(1)}={placeholder}", value)
    return event_dict


def _truncate_large_values(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8", errors="replace")
            event_dict[key] = value
        if isinstance(value, str) and len(value) > MAX_LOG_VALUE_LENGTH:
            event_dict[key] = f"{value[:MAX_LOG_VALUE_LENGTH]}{TRUNCATION_SUFFIX}"
    return event_dict


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, handlers=[logging.StreamHandler(sys.stdout)], format="%(message)s")
    # uvicorn's access log prints raw query strings, OAuth codes included.
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).handlers = []

    structlog.configure(
        processors=[
            contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _mask_sensitive_values,
            _scrub_query_credentials,
            _truncate_large_values,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_log_context(**params: Any) -> None:
    payload = {key: str(value) for key, value in params.items() if value is not None}
    if payload:
        contextvars.bind_contextvars(**payload)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its id and echoes the id back.

    Only the path is bound; query strings on the callback carry the code and state.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex

        contextvars.clear_contextvars()
        bind_log_context(request_id=request_id, method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    if name is not None:
        return structlog.get_logger(name, **initial_values)
    return structlog.get_logger(**initial_values)


__all__ = [
    "REQUEST_ID_HEADER",
    "RequestIdMiddleware",
    "bind_log_context",
    "configure_logging",
    "get_logger",
]
