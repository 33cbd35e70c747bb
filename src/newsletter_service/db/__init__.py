# ABOUTME: Database module initialization.
# ABOUTME: Exports core database components for persistence layer.

from newsletter_service.db.models import Base, Editor, Newsletter, Subscriber, SubscriptionToken
from newsletter_service.db.session import get_session, init_db

__all__ = [
    "Base",
    "Editor",
    "Newsletter",
    "Subscriber",
    "SubscriptionToken",
    "get_session",
    "init_db",
]
