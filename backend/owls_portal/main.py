from contextlib import asynccontextmanager
from typing import AsyncIterator

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from owls_portal.api.routes import auth, discord, health, metrics
from owls_portal.core.config import Settings, get_settings
from owls_portal.core.errors import ErrorCode, create_error_detail
from owls_portal.core.http import close_http_client, get_http_client
from owls_portal.core.session_gate import SessionGateMiddleware
from owls_portal.logging import RequestIdMiddleware, configure_logging, get_logger
from owls_portal.observability.metrics import MetricsMiddleware

load_dotenv()
configure_logging()
logger = get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "application_started",
            environment=settings.app_env,
            discord_configured=bool(settings.discord_client_id),
            api_base_url=settings.api_base_url,
        )
        logger.info("allowed_origins_configured", origins=settings.allowed_origins)
        get_http_client(settings)
        yield
        close_http_client()
        logger.info("application_stopped", environment=settings.app_env)

    app = FastAPI(
        title="Owls Insight Portal",
        version=settings.app_version,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings

    app.add_middleware(SessionGateMiddleware)
    if settings.metrics_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health.router, prefix="/api")
    app.include_router(auth.router, prefix="/api")
    app.include_router(discord.router, prefix="/api")
    if settings.metrics_enabled:
        app.include_router(metrics.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        content = create_error_detail(ErrorCode.VALIDATION_ERROR, "Validation error", exc.errors())
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict) and {"code", "error"}.issubset(detail.keys()):
            content = detail if "data" in detail else {**detail, "data": None}
        else:
            message = detail if isinstance(detail, str) else "An unexpected error occurred"
            code_value = ErrorCode.NOT_FOUND if exc.status_code == status.HTTP_404_NOT_FOUND else ErrorCode.BAD_REQUEST
            content = create_error_detail(code_value, message)
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    return app


app = create_app()
