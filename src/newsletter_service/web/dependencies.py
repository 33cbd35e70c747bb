# ABOUTME: FastAPI dependency injection for database sessions and services.
# ABOUTME: Builds per-request repositories and the services wired to them.

from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_service.config import Settings, get_settings
from newsletter_service.db.repository import (
    EditorRepository,
    NewsletterRepository,
    SubscriberRepository,
    SubscriptionTokenRepository,
)
from newsletter_service.db.session import get_db_session
from newsletter_service.email.sender import EmailSender
from newsletter_service.services.listing_service import SubscriberListingService
from newsletter_service.services.notifier import EmailNotifier
from newsletter_service.services.subscription_service import SubscriptionService

# Type aliases for common dependencies
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def get_notifier(settings: AppSettings) -> EmailNotifier:
    """Get the email notifier for confirmation and welcome messages."""
    return EmailNotifier(EmailSender(settings), settings.app_base_url)


Notifier = Annotated[EmailNotifier, Depends(get_notifier)]


async def get_subscription_service(
    session: DbSession,
    settings: AppSettings,
    notifier: Notifier,
) -> AsyncGenerator[SubscriptionService]:
    """Get the subscription lifecycle service bound to the request transaction."""
    yield SubscriptionService(
        subscribers=SubscriberRepository(session),
        tokens=SubscriptionTokenRepository(session),
        newsletters=NewsletterRepository(session),
        notifier=notifier,
        confirm_token_ttl=timedelta(hours=settings.confirm_token_ttl_hours),
        unsubscribe_token_ttl=timedelta(days=settings.unsubscribe_token_ttl_days),
        timeout=settings.operation_timeout_seconds,
    )


SubscriptionSvc = Annotated[SubscriptionService, Depends(get_subscription_service)]


async def get_listing_service(
    session: DbSession,
    settings: AppSettings,
) -> AsyncGenerator[SubscriberListingService]:
    """Get the editor-facing subscriber listing service."""
    yield SubscriberListingService(
        editors=EditorRepository(session),
        newsletters=NewsletterRepository(session),
        subscribers=SubscriberRepository(session),
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
        timeout=settings.operation_timeout_seconds,
    )


ListingSvc = Annotated[SubscriberListingService, Depends(get_listing_service)]
