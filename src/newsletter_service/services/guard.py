# ABOUTME: Deadline and failure guard wrapped around every service operation.
# ABOUTME: Maps timeouts to CANCELLED and unexpected collaborator errors to INTERNAL.

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog

from newsletter_service.errors import ServiceError

log = structlog.get_logger()


@asynccontextmanager
async def guarded(operation: str, timeout: float | None) -> AsyncGenerator[None]:
    """Run a service operation under a deadline.

    ServiceErrors pass through unchanged. ``asyncio.CancelledError`` is never
    caught, so task cancellation propagates to the caller as-is.

    Raises:
        ServiceError: CANCELLED when the deadline expires, INTERNAL when a
            collaborator fails.
    """
    try:
        async with asyncio.timeout(timeout):
            yield
    except ServiceError:
        raise
    except TimeoutError as e:
        log.warning("operation_deadline_exceeded", operation=operation, timeout=timeout)
        raise ServiceError.cancelled(operation) from e
    except Exception as e:
        log.exception("operation_failed", operation=operation)
        raise ServiceError.internal() from e
