# ABOUTME: Protocol interfaces for the collaborators the services depend on.
# ABOUTME: Repositories satisfy them structurally; tests substitute in-memory fakes.

from collections.abc import Callable, Collection, Sequence
from datetime import UTC, datetime
from typing import Protocol

from newsletter_service.db.models import Editor, Newsletter, Subscriber
from newsletter_service.models import ConsumeResult, SubscriberStatus, TokenPurpose, TokenRecord

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


class SubscriberStore(Protocol):
    async def create(self, email: str, newsletter_id: str, now: datetime) -> Subscriber: ...
    async def get_by_id(self, subscriber_id: str) -> Subscriber | None: ...
    async def get_by_email_and_newsletter(
        self, email: str, newsletter_id: str
    ) -> Subscriber | None: ...
    async def transition_status(
        self,
        subscriber_id: str,
        from_statuses: Collection[SubscriberStatus],
        to_status: SubscriberStatus,
        at: datetime,
    ) -> bool: ...
    async def list_active_by_newsletter(
        self, newsletter_id: str, limit: int = 10, offset: int = 0
    ) -> Sequence[Subscriber]: ...
    async def count_active_by_newsletter(self, newsletter_id: str) -> int: ...
    async def list_active_emails(self, newsletter_id: str) -> Sequence[str]: ...


class TokenStore(Protocol):
    """Issues opaque single-use tokens bound to (subscriber, purpose)."""

    async def issue(
        self, subscriber_id: str, purpose: TokenPurpose, expires_at: datetime
    ) -> str: ...
    async def resolve(self, token: str, now: datetime) -> TokenRecord | None: ...
    async def consume(self, token: str, now: datetime) -> ConsumeResult: ...
    async def revoke(self, subscriber_id: str, purpose: TokenPurpose | None = None) -> int: ...


class EditorDirectory(Protocol):
    async def get_by_external_id(self, external_id: str) -> Editor | None: ...


class NewsletterDirectory(Protocol):
    async def get_by_id(self, newsletter_id: str) -> Newsletter | None: ...
    async def get_owned(self, newsletter_id: str, editor_id: str) -> Newsletter | None: ...


class SubscriptionNotifier(Protocol):
    """Out-of-band delivery of subscription tokens (email)."""

    async def send_confirmation(self, email: str, newsletter_name: str, token: str) -> None: ...
    async def send_welcome(self, email: str, newsletter_name: str, token: str) -> None: ...
