"""
MonitorFlow - event ingestion with Discord and webhook fan-out.
FastAPI application factory, middleware and error rendering.
"""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from monitorflow.config import Settings, get_settings
from monitorflow.api.router import api_router
from monitorflow.database import dispose_engine
from monitorflow.utils.errors import MonitorFlowError, format_validation_errors
from monitorflow.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    log_context_ctx,
    set_correlation_id,
)

logger = logging.getLogger("monitorflow")

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with a correlation ID (caller-supplied or generated) and echoes it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(cid)
        log_context_ctx.set({})

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        logger.debug(
            "%s %s -> %d (%.1fms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


def _init_sentry(settings: Settings) -> None:
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            environment=settings.app_env,
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.warning("Sentry initialization failed: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("MonitorFlow starting (env=%s)", settings.app_env)

    if not settings.discord_bot_token:
        logger.warning(
            "DISCORD_BOT_TOKEN not set - events will be persisted but end FAILED "
            "until the notification channel is configured"
        )
    if settings.sentry_dsn:
        _init_sentry(settings)

    yield

    await dispose_engine()
    logger.info("MonitorFlow stopped")


def register_exception_handlers(application: FastAPI) -> None:
    """Every error response is JSON with a human-readable `message`."""

    @application.exception_handler(MonitorFlowError)
    async def monitorflow_error_handler(request: Request, exc: MonitorFlowError):
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                exc.__class__.__name__, request.method, request.url.path, exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"message": format_validation_errors(exc.errors())},
        )

    @application.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": message},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="MonitorFlow",
        description="Event ingestion with Discord and webhook fan-out",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[*settings.cors_allowed_origins, settings.app_base_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER],
        expose_headers=[CORRELATION_HEADER],
    )
    # Added last so it wraps CORS and tags preflight responses too
    application.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(application)
    application.include_router(api_router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "monitorflow.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        log_config=None,
    )
