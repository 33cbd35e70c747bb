# ABOUTME: Request logging middleware binding per-request structlog context.
# ABOUTME: Logs method, path, status and duration for every HTTP request.

import time
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from newsletter_service.validation import id_from_path

log = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def newsletter_id_for(path: str) -> str | None:
    """Newsletter id of a /newsletters/{id}/... path, if any."""
    for suffix in ("/subscribe", "/subscribers"):
        newsletter_id = id_from_path(path, "/newsletters/", suffix)
        if newsletter_id:
            return newsletter_id
    return None


async def log_requests(request: Request, call_next: RequestResponseEndpoint) -> Response:
    """Bind request context, call the route and log its completion."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    newsletter_id = newsletter_id_for(request.url.path)
    if newsletter_id:
        structlog.contextvars.bind_contextvars(newsletter_id=newsletter_id)

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - start) * 1000, 2)

    response.headers[REQUEST_ID_HEADER] = request_id
    log.info("request_completed", status=response.status_code, duration_ms=duration_ms)
    return response
