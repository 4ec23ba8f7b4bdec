import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import api_router
from app.core.config import Settings, get_settings
from app.core.errors import AppError
from app.core.logging_config import configure_logging
from app.core.sentry import init_sentry
from app.middleware.request_log import RequestLoggingMiddleware
from app.schemas.error import ErrorResponse
from app.services.email import NotificationSender, SmtpEmailSender
from app.services.subscriber_store import SubscriberStore, build_subscriber_store
from app.services.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: SubscriberStore = app.state.subscriber_store
    await store.open()
    logger.info("Subscriber store ready (%s backend)", app.state.settings.subscriber_backend)
    try:
        yield
    finally:
        await store.close()


def get_application(
    settings: Settings | None = None,
    *,
    store: SubscriberStore | None = None,
    sender: NotificationSender | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings.log_json)
    init_sentry(settings)

    store = store or build_subscriber_store(settings)
    sender = sender or SmtpEmailSender(settings)

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.subscriber_store = store
    app.state.email_sender = sender
    app.state.subscription_service = SubscriptionService(store, sender, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return _error(exc.status_code, "Internal server error")
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("%s %s rejected: invalid body", request.method, request.url.path)
        return _error(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    return app


app = get_application()
