# ABOUTME: Editor bearer-token verification for the subscriber listing endpoint.
# ABOUTME: Validates Firebase ID tokens with google-auth and returns the editor's identity.

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from newsletter_service.config import get_settings

log = structlog.get_logger()

BEARER_PREFIX = "Bearer "


async def verify_editor_token(request: Request) -> str:
    """Verify the Firebase ID token in the Authorization header.

    Returns the token subject (the editor's external identity).

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token
            does not verify.
    """
    settings = get_settings()

    if not settings.firebase_project_id:
        log.error("editor_auth_not_configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        log.warning("auth_missing_authorization")
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not auth_header.startswith(BEARER_PREFIX):
        log.warning("auth_invalid_format")
        raise HTTPException(status_code=401, detail="Invalid authorization format")

    token = auth_header[len(BEARER_PREFIX) :].strip()

    try:
        claims = id_token.verify_firebase_token(
            token,
            google_requests.Request(),
            audience=settings.firebase_project_id,
        )
    except ValueError as e:
        log.warning("auth_invalid_token", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    subject = (claims or {}).get("sub")
    if not subject:
        log.warning("auth_missing_subject")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    structlog.contextvars.bind_contextvars(editor_uid=subject)
    return subject


# Type alias for dependency injection
EditorIdentity = Annotated[str, Depends(verify_editor_token)]
