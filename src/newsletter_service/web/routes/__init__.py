# ABOUTME: Routes module initialization.
# ABOUTME: Exports all route modules for FastAPI app.

from newsletter_service.web.routes import api, subscribers, subscriptions

__all__ = ["api", "subscribers", "subscriptions"]
