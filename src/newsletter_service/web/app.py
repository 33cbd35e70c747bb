# ABOUTME: FastAPI application factory with error handlers and database lifespan.
# ABOUTME: Main entry point for the newsletter subscription HTTP API.

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from http import HTTPStatus

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from newsletter_service import __version__
from newsletter_service.db.session import close_db, init_db
from newsletter_service.errors import INTERNAL_MESSAGE, ErrorKind, ServiceError
from newsletter_service.models import ErrorResponse
from newsletter_service.web.middleware.logging import log_requests
from newsletter_service.web.routes import api, subscribers, subscriptions

logger = structlog.get_logger()


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the uniform ``{error, message}`` error body."""
    body = ErrorResponse(error=HTTPStatus(status_code).phrase, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def handle_service_error(_request: Request, exc: ServiceError) -> JSONResponse:
    """Map a ServiceError to its HTTP status."""
    if exc.kind == ErrorKind.INTERNAL:
        return error_response(exc.status_code, INTERNAL_MESSAGE)
    logger.info("request_rejected", kind=exc.kind.value, reason=exc.reason)
    return error_response(exc.status_code, exc.message)


async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are client errors, not 422s."""
    logger.info("request_invalid", errors=len(exc.errors()))
    return error_response(HTTPStatus.BAD_REQUEST, "Invalid request body or parameters.")


async def handle_http_exception(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep framework errors (404 routes, 405 methods) in the same shape."""
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def handle_unexpected_error(_request: Request, _exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error")
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_MESSAGE)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan context for database setup/teardown."""
    logger.info("app_startup")
    await init_db()
    yield
    logger.info("app_shutdown")
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Newsletter Service",
        description="Double opt-in newsletter subscriptions",
        version=__version__,
        lifespan=lifespan,
    )

    app.middleware("http")(log_requests)

    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Include routers
    app.include_router(subscriptions.router)
    app.include_router(subscribers.router)
    app.include_router(api.router)

    return app


# Application instance for uvicorn
app = create_app()
