# ABOUTME: Services module initialization.
# ABOUTME: Exports the subscription lifecycle and subscriber listing services.

from newsletter_service.services.listing_service import SubscriberListingService
from newsletter_service.services.notifier import EmailNotifier
from newsletter_service.services.subscription_service import SubscriptionService

__all__ = [
    "EmailNotifier",
    "SubscriberListingService",
    "SubscriptionService",
]
