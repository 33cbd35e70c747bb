# ABOUTME: Pytest fixtures and configuration for newsletter service tests.
# ABOUTME: Provides test settings, a controllable clock and in-memory stores.

import secrets
from collections.abc import Collection
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from pydantic import SecretStr

from newsletter_service.config import Settings
from newsletter_service.db.models import Editor, Newsletter, Subscriber, SubscriptionToken
from newsletter_service.errors import DuplicateSubscriberError
from newsletter_service.models import ConsumeResult, SubscriberStatus, TokenPurpose, TokenRecord
from newsletter_service.services.listing_service import SubscriberListingService
from newsletter_service.services.subscription_service import SubscriptionService

OWNER_UID = "uid-owner"
OTHER_UID = "uid-other"
NEWSLETTER_ID = "nl-1"
OTHER_NEWSLETTER_ID = "nl-2"


class FakeClock:
    """Clock returning a fixed instant that tests move forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class InMemorySubscriberStore:
    """Dict-backed SubscriberStore."""

    def __init__(self) -> None:
        self.rows: dict[str, Subscriber] = {}

    def add(
        self,
        email: str,
        newsletter_id: str,
        status: SubscriberStatus,
        subscribed_at: datetime,
    ) -> Subscriber:
        subscriber = Subscriber(
            id=str(uuid4()),
            email=email,
            newsletter_id=newsletter_id,
            status=status.value,
            subscribed_at=subscribed_at,
        )
        self.rows[subscriber.id] = subscriber
        return subscriber

    async def create(self, email: str, newsletter_id: str, now: datetime) -> Subscriber:
        if await self.get_by_email_and_newsletter(email, newsletter_id) is not None:
            raise DuplicateSubscriberError(email)
        return self.add(email, newsletter_id, SubscriberStatus.PENDING, now)

    async def get_by_id(self, subscriber_id: str) -> Subscriber | None:
        return self.rows.get(subscriber_id)

    async def get_by_email_and_newsletter(
        self, email: str, newsletter_id: str
    ) -> Subscriber | None:
        for row in self.rows.values():
            if row.email == email and row.newsletter_id == newsletter_id:
                return row
        return None

    async def transition_status(
        self,
        subscriber_id: str,
        from_statuses: Collection[SubscriberStatus],
        to_status: SubscriberStatus,
        at: datetime,
    ) -> bool:
        row = self.rows.get(subscriber_id)
        if row is None or row.status not in {s.value for s in from_statuses}:
            return False
        row.status = to_status.value
        if to_status is SubscriberStatus.ACTIVE:
            row.confirmed_at = at
        elif to_status is SubscriberStatus.UNSUBSCRIBED:
            row.unsubscribed_at = at
        else:
            row.subscribed_at = at
            row.confirmed_at = None
            row.unsubscribed_at = None
        return True

    def _active(self, newsletter_id: str) -> list[Subscriber]:
        rows = [
            row
            for row in self.rows.values()
            if row.newsletter_id == newsletter_id and row.status == SubscriberStatus.ACTIVE
        ]
        return sorted(rows, key=lambda row: (row.subscribed_at, row.id))

    async def list_active_by_newsletter(
        self, newsletter_id: str, limit: int = 10, offset: int = 0
    ) -> list[Subscriber]:
        return self._active(newsletter_id)[offset : offset + limit]

    async def count_active_by_newsletter(self, newsletter_id: str) -> int:
        return len(self._active(newsletter_id))

    async def list_active_emails(self, newsletter_id: str) -> list[str]:
        return [row.email for row in self._active(newsletter_id)]


class InMemoryTokenStore:
    """Dict-backed TokenStore."""

    def __init__(self) -> None:
        self.tokens: dict[str, SubscriptionToken] = {}

    async def issue(self, subscriber_id: str, purpose: TokenPurpose, expires_at: datetime) -> str:
        value = secrets.token_hex(16)
        self.tokens[value] = SubscriptionToken(
            token=value,
            subscriber_id=subscriber_id,
            purpose=purpose.value,
            expires_at=expires_at,
            consumed_at=None,
        )
        return value

    async def resolve(self, token: str, now: datetime) -> TokenRecord | None:
        record = self.tokens.get(token)
        if record is None or record.expires_at <= now:
            return None
        return TokenRecord(
            subscriber_id=record.subscriber_id,
            purpose=TokenPurpose(record.purpose),
            consumed=record.consumed_at is not None,
        )

    async def consume(self, token: str, now: datetime) -> ConsumeResult:
        record = self.tokens.get(token)
        if record is None:
            return ConsumeResult.NOT_FOUND
        if record.consumed_at is not None:
            return ConsumeResult.ALREADY_CONSUMED
        if record.expires_at <= now:
            return ConsumeResult.EXPIRED
        record.consumed_at = now
        return ConsumeResult.OK

    async def revoke(self, subscriber_id: str, purpose: TokenPurpose | None = None) -> int:
        doomed = [
            value
            for value, record in self.tokens.items()
            if record.subscriber_id == subscriber_id
            and record.consumed_at is None
            and (purpose is None or record.purpose == purpose.value)
        ]
        for value in doomed:
            del self.tokens[value]
        return len(doomed)

    def for_subscriber(self, subscriber_id: str, purpose: TokenPurpose) -> list[str]:
        return [
            value
            for value, record in self.tokens.items()
            if record.subscriber_id == subscriber_id and record.purpose == purpose.value
        ]


class InMemoryDirectory:
    """Editors and newsletters for ownership checks."""

    def __init__(self) -> None:
        self.editors: dict[str, Editor] = {}
        self.newsletters: dict[str, Newsletter] = {}

    def add_editor(self, external_id: str) -> Editor:
        editor = Editor(id=str(uuid4()), external_id=external_id, email=f"{external_id}@example.com")
        self.editors[external_id] = editor
        return editor

    def add_newsletter(self, newsletter_id: str, editor: Editor, name: str) -> Newsletter:
        newsletter = Newsletter(id=newsletter_id, editor_id=editor.id, name=name)
        self.newsletters[newsletter_id] = newsletter
        return newsletter

    async def get_by_external_id(self, external_id: str) -> Editor | None:
        return self.editors.get(external_id)

    async def get_by_id(self, newsletter_id: str) -> Newsletter | None:
        return self.newsletters.get(newsletter_id)

    async def get_owned(self, newsletter_id: str, editor_id: str) -> Newsletter | None:
        newsletter = self.newsletters.get(newsletter_id)
        if newsletter is None or newsletter.editor_id != editor_id:
            return None
        return newsletter


class RecordingNotifier:
    """SubscriptionNotifier that records what would have been mailed."""

    def __init__(self) -> None:
        self.confirmations: list[tuple[str, str, str]] = []
        self.welcomes: list[tuple[str, str, str]] = []

    async def send_confirmation(self, email: str, newsletter_name: str, token: str) -> None:
        self.confirmations.append((email, newsletter_name, token))

    async def send_welcome(self, email: str, newsletter_name: str, token: str) -> None:
        self.welcomes.append((email, newsletter_name, token))


@pytest.fixture
def mock_settings() -> Settings:
    """Create mock settings for testing."""
    return Settings(
        smtp_host="localhost",
        smtp_port=1025,
        smtp_user=SecretStr("test-user"),
        smtp_password=SecretStr("test-password"),
        sender_email="news@example.com",
        sender_name="Test Sender",
        bounce_email="bounce@example.com",
        database_url_override="sqlite+aiosqlite:///:memory:",
        app_base_url="https://news.example.com",
        firebase_project_id="test-project",
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def subscriber_store() -> InMemorySubscriberStore:
    return InMemorySubscriberStore()


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Two editors, each owning one newsletter."""
    directory = InMemoryDirectory()
    owner = directory.add_editor(OWNER_UID)
    other = directory.add_editor(OTHER_UID)
    directory.add_newsletter(NEWSLETTER_ID, owner, "Weekly Digest")
    directory.add_newsletter(OTHER_NEWSLETTER_ID, other, "Other Letter")
    return directory


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(
    subscriber_store: InMemorySubscriberStore,
    token_store: InMemoryTokenStore,
    directory: InMemoryDirectory,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> SubscriptionService:
    """SubscriptionService wired to in-memory collaborators."""
    return SubscriptionService(
        subscribers=subscriber_store,
        tokens=token_store,
        newsletters=directory,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def listing_service(
    subscriber_store: InMemorySubscriberStore,
    directory: InMemoryDirectory,
) -> SubscriberListingService:
    """SubscriberListingService wired to in-memory collaborators."""
    return SubscriberListingService(
        editors=directory,
        newsletters=directory,
        subscribers=subscriber_store,
    )
