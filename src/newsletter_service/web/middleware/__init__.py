# ABOUTME: Middleware module for web application.
# ABOUTME: Exports editor authentication and request logging middleware.

from newsletter_service.web.middleware.auth import EditorIdentity, verify_editor_token
from newsletter_service.web.middleware.logging import log_requests

__all__ = ["EditorIdentity", "log_requests", "verify_editor_token"]
