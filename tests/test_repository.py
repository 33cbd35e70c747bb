# ABOUTME: Tests for repositories against an in-memory SQLite database.
# ABOUTME: Validates conditional transitions, exactly-once token consumption and ordering.

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from newsletter_service.db.models import Base
from newsletter_service.db.repository import (
    EditorRepository,
    NewsletterRepository,
    SubscriberRepository,
    SubscriptionTokenRepository,
)
from newsletter_service.errors import DuplicateSubscriberError, ErrorKind, ServiceError
from newsletter_service.models import ConsumeResult, SubscriberStatus, TokenPurpose
from newsletter_service.services.notifier import EmailNotifier
from newsletter_service.services.subscription_service import SubscriptionService

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
async def session() -> AsyncGenerator[AsyncSession]:
    """Session bound to a fresh in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def newsletter_id(session: AsyncSession) -> str:
    editor = await EditorRepository(session).create("uid-owner", "owner@example.com")
    newsletter = await NewsletterRepository(session).create(editor.id, "Weekly Digest")
    return newsletter.id


class TestSubscriberRepository:
    """Tests for SubscriberRepository."""

    async def test_create_and_lookup(self, session, newsletter_id) -> None:
        repo = SubscriberRepository(session)

        created = await repo.create("alice@example.com", newsletter_id, NOW)
        found = await repo.get_by_email_and_newsletter("alice@example.com", newsletter_id)

        assert found is not None
        assert found.id == created.id
        assert found.status == SubscriberStatus.PENDING

    async def test_duplicate_raises(self, session, newsletter_id) -> None:
        repo = SubscriberRepository(session)
        await repo.create("alice@example.com", newsletter_id, NOW)

        with pytest.raises(DuplicateSubscriberError):
            await repo.create("alice@example.com", newsletter_id, NOW)

    async def test_transition_only_from_expected_status(self, session, newsletter_id) -> None:
        """A conditional transition applies once; the repeat matches no row."""
        repo = SubscriberRepository(session)
        subscriber = await repo.create("alice@example.com", newsletter_id, NOW)

        first = await repo.transition_status(
            subscriber.id, (SubscriberStatus.PENDING,), SubscriberStatus.ACTIVE, NOW
        )
        second = await repo.transition_status(
            subscriber.id, (SubscriberStatus.PENDING,), SubscriberStatus.ACTIVE, NOW
        )

        assert first is True
        assert second is False
        refreshed = await repo.get_by_id(subscriber.id)
        assert refreshed.status == SubscriberStatus.ACTIVE
        assert refreshed.confirmed_at is not None

    async def test_restart_clears_timestamps(self, session, newsletter_id) -> None:
        repo = SubscriberRepository(session)
        subscriber = await repo.create("alice@example.com", newsletter_id, NOW)
        open_statuses = (SubscriberStatus.PENDING, SubscriberStatus.ACTIVE)
        await repo.transition_status(
            subscriber.id, open_statuses, SubscriberStatus.UNSUBSCRIBED, NOW
        )

        restarted = await repo.transition_status(
            subscriber.id,
            (SubscriberStatus.UNSUBSCRIBED,),
            SubscriberStatus.PENDING,
            NOW + timedelta(days=1),
        )

        assert restarted is True
        refreshed = await repo.get_by_id(subscriber.id)
        assert refreshed.status == SubscriberStatus.PENDING
        assert refreshed.unsubscribed_at is None
        assert refreshed.confirmed_at is None

    async def test_active_listing_order_and_count(self, session, newsletter_id) -> None:
        repo = SubscriberRepository(session)
        for i, email in enumerate(["c@example.com", "a@example.com", "b@example.com"]):
            subscriber = await repo.create(email, newsletter_id, NOW + timedelta(minutes=i))
            await repo.transition_status(
                subscriber.id, (SubscriberStatus.PENDING,), SubscriberStatus.ACTIVE, NOW
            )
        await repo.create("pending@example.com", newsletter_id, NOW)

        page = await repo.list_active_by_newsletter(newsletter_id, limit=2, offset=0)
        rest = await repo.list_active_by_newsletter(newsletter_id, limit=2, offset=2)
        total = await repo.count_active_by_newsletter(newsletter_id)
        emails = await repo.list_active_emails(newsletter_id)

        assert [s.email for s in page] == ["c@example.com", "a@example.com"]
        assert [s.email for s in rest] == ["b@example.com"]
        assert total == 3
        assert list(emails) == ["c@example.com", "a@example.com", "b@example.com"]


class TestSubscriptionTokenRepository:
    """Tests for SubscriptionTokenRepository."""

    @pytest.fixture
    async def subscriber_id(self, session, newsletter_id) -> str:
        subscriber = await SubscriberRepository(session).create(
            "alice@example.com", newsletter_id, NOW
        )
        return subscriber.id

    async def test_issue_and_resolve(self, session, subscriber_id) -> None:
        repo = SubscriptionTokenRepository(session)

        token = await repo.issue(subscriber_id, TokenPurpose.CONFIRM, NOW + timedelta(hours=24))
        record = await repo.resolve(token, NOW)

        assert len(token) == 32
        assert record is not None
        assert record.subscriber_id == subscriber_id
        assert record.purpose is TokenPurpose.CONFIRM
        assert record.consumed is False

    async def test_tokens_are_unique(self, session, subscriber_id) -> None:
        repo = SubscriptionTokenRepository(session)

        tokens = {
            await repo.issue(subscriber_id, TokenPurpose.CONFIRM, NOW + timedelta(hours=1))
            for _ in range(20)
        }

        assert len(tokens) == 20

    async def test_consume_exactly_once(self, session, subscriber_id) -> None:
        repo = SubscriptionTokenRepository(session)
        token = await repo.issue(subscriber_id, TokenPurpose.CONFIRM, NOW + timedelta(hours=24))

        first = await repo.consume(token, NOW)
        second = await repo.consume(token, NOW)

        assert first is ConsumeResult.OK
        assert second is ConsumeResult.ALREADY_CONSUMED
        record = await repo.resolve(token, NOW)
        assert record.consumed is True

    async def test_expired_token(self, session, subscriber_id) -> None:
        repo = SubscriptionTokenRepository(session)
        token = await repo.issue(subscriber_id, TokenPurpose.CONFIRM, NOW + timedelta(hours=24))
        later = NOW + timedelta(hours=25)

        assert await repo.resolve(token, later) is None
        assert await repo.consume(token, later) is ConsumeResult.EXPIRED

    async def test_unknown_token(self, session) -> None:
        repo = SubscriptionTokenRepository(session)

        assert await repo.resolve("missing", NOW) is None
        assert await repo.consume("missing", NOW) is ConsumeResult.NOT_FOUND

    async def test_revoke_keeps_consumed_tokens(self, session, subscriber_id) -> None:
        repo = SubscriptionTokenRepository(session)
        expires = NOW + timedelta(days=1)
        used = await repo.issue(subscriber_id, TokenPurpose.CONFIRM, expires)
        await repo.consume(used, NOW)
        open_confirm = await repo.issue(subscriber_id, TokenPurpose.CONFIRM, expires)
        open_unsubscribe = await repo.issue(subscriber_id, TokenPurpose.UNSUBSCRIBE, expires)

        revoked = await repo.revoke(subscriber_id, TokenPurpose.CONFIRM)

        assert revoked == 1
        assert await repo.resolve(open_confirm, NOW) is None
        assert await repo.resolve(used, NOW) is not None
        assert await repo.resolve(open_unsubscribe, NOW) is not None

        assert await repo.revoke(subscriber_id) == 1
        assert await repo.resolve(open_unsubscribe, NOW) is None


class TestNewsletterOwnership:
    async def test_get_owned(self, session, newsletter_id) -> None:
        editors = EditorRepository(session)
        newsletters = NewsletterRepository(session)
        owner = await editors.get_by_external_id("uid-owner")
        other = await editors.create("uid-other", "other@example.com")

        assert (await newsletters.get_owned(newsletter_id, owner.id)).id == newsletter_id
        assert await newsletters.get_owned(newsletter_id, other.id) is None
        assert await editors.get_by_external_id("uid-nobody") is None


class TestSubscriptionFlowWithDatabase:
    """End-to-end lifecycle through the real repositories."""

    @pytest.fixture
    def notifier(self) -> AsyncMock:
        return AsyncMock(spec=EmailNotifier)

    @pytest.fixture
    def service(self, session, notifier) -> SubscriptionService:
        return SubscriptionService(
            subscribers=SubscriberRepository(session),
            tokens=SubscriptionTokenRepository(session),
            newsletters=NewsletterRepository(session),
            notifier=notifier,
        )

    async def test_full_lifecycle(self, service, notifier, session, newsletter_id) -> None:
        pending = await service.subscribe("Alice@Example.com", newsletter_id)
        confirm_token = notifier.send_confirmation.await_args.args[2]

        active = await service.confirm_subscription(confirm_token)
        unsubscribe_token = notifier.send_welcome.await_args.args[2]

        with pytest.raises(ServiceError) as exc_info:
            await service.confirm_subscription(confirm_token)
        assert exc_info.value.reason == "already_confirmed"

        assert await service.active_emails(newsletter_id) == ["alice@example.com"]

        await service.unsubscribe_by_token(unsubscribe_token)
        await service.unsubscribe_by_token(unsubscribe_token)

        row = await SubscriberRepository(session).get_by_id(pending.id)
        assert active.id == pending.id
        assert row.status == SubscriberStatus.UNSUBSCRIBED
        assert await service.active_emails(newsletter_id) == []

    async def test_resubscribe_reuses_row(self, service, notifier, newsletter_id) -> None:
        first = await service.subscribe("alice@example.com", newsletter_id)
        await service.unsubscribe_by_identity("alice@example.com", newsletter_id)

        second = await service.subscribe("alice@example.com", newsletter_id)

        assert second.id == first.id
        assert second.status is SubscriberStatus.PENDING

    async def test_old_confirm_link_after_resubscribe(
        self, service, notifier, session, newsletter_id
    ) -> None:
        pending = await service.subscribe("alice@example.com", newsletter_id)
        old_token = notifier.send_confirmation.await_args.args[2]
        await service.confirm_subscription(old_token)
        await service.unsubscribe_by_identity("alice@example.com", newsletter_id)
        await service.subscribe("alice@example.com", newsletter_id)
        new_token = notifier.send_confirmation.await_args.args[2]

        with pytest.raises(ServiceError) as exc_info:
            await service.confirm_subscription(old_token)

        assert exc_info.value.kind is ErrorKind.INVALID_OR_EXPIRED_TOKEN
        row = await SubscriberRepository(session).get_by_id(pending.id)
        assert row.status == SubscriberStatus.PENDING

        active = await service.confirm_subscription(new_token)
        assert active.status is SubscriberStatus.ACTIVE

    async def test_unknown_newsletter(self, service) -> None:
        with pytest.raises(ServiceError) as exc_info:
            await service.subscribe("alice@example.com", "missing")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
