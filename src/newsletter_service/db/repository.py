# ABOUTME: Repository classes for database access patterns.
# ABOUTME: Provides Subscriber, SubscriptionToken, Editor and Newsletter repositories.

import secrets
from collections.abc import Collection, Sequence
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_service.db.models import Editor, Newsletter, Subscriber, SubscriptionToken
from newsletter_service.errors import DuplicateSubscriberError
from newsletter_service.models import ConsumeResult, SubscriberStatus, TokenPurpose, TokenRecord


class SubscriberRepository:
    """Repository for Subscriber persistence and guarded status transitions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, email: str, newsletter_id: str, now: datetime) -> Subscriber:
        """Insert a pending subscriber.

        Raises:
            DuplicateSubscriberError: If (email, newsletter_id) already exists.
        """
        subscriber = Subscriber(
            email=email,
            newsletter_id=newsletter_id,
            status=SubscriberStatus.PENDING.value,
            subscribed_at=now,
        )
        self.session.add(subscriber)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateSubscriberError(f"{email} already exists for {newsletter_id}") from e
        return subscriber

    async def get_by_id(self, subscriber_id: str) -> Subscriber | None:
        """Get subscriber by ID, bypassing any stale identity-map copy."""
        return await self.session.get(Subscriber, subscriber_id, populate_existing=True)

    async def get_by_email_and_newsletter(
        self, email: str, newsletter_id: str
    ) -> Subscriber | None:
        """Get the subscriber row for an (email, newsletter) pair."""
        result = await self.session.execute(
            select(Subscriber)
            .where(
                Subscriber.email == email,
                Subscriber.newsletter_id == newsletter_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        subscriber_id: str,
        from_statuses: Collection[SubscriberStatus],
        to_status: SubscriberStatus,
        at: datetime,
    ) -> bool:
        """Atomically move a subscriber to ``to_status`` if it is in ``from_statuses``.

        Returns True if the row was updated, False if its status did not match.
        """
        values: dict[str, object] = {"status": to_status.value}
        if to_status is SubscriberStatus.ACTIVE:
            values["confirmed_at"] = at
        elif to_status is SubscriberStatus.UNSUBSCRIBED:
            values["unsubscribed_at"] = at
        else:
            # A new pending cycle starts from a clean slate
            values.update(subscribed_at=at, confirmed_at=None, unsubscribed_at=None)

        result = await self.session.execute(
            update(Subscriber)
            .where(
                Subscriber.id == subscriber_id,
                Subscriber.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def list_active_by_newsletter(
        self, newsletter_id: str, limit: int = 10, offset: int = 0
    ) -> Sequence[Subscriber]:
        """List active subscribers in stable (subscribed_at, id) order."""
        result = await self.session.execute(
            select(Subscriber)
            .where(
                Subscriber.newsletter_id == newsletter_id,
                Subscriber.status == SubscriberStatus.ACTIVE.value,
            )
            .order_by(Subscriber.subscribed_at, Subscriber.id)
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def count_active_by_newsletter(self, newsletter_id: str) -> int:
        """Count active subscribers of a newsletter."""
        result = await self.session.execute(
            select(func.count(Subscriber.id)).where(
                Subscriber.newsletter_id == newsletter_id,
                Subscriber.status == SubscriberStatus.ACTIVE.value,
            )
        )
        return result.scalar_one()

    async def list_active_emails(self, newsletter_id: str) -> Sequence[str]:
        """Email addresses of every active subscriber of a newsletter."""
        result = await self.session.execute(
            select(Subscriber.email)
            .where(
                Subscriber.newsletter_id == newsletter_id,
                Subscriber.status == SubscriberStatus.ACTIVE.value,
            )
            .order_by(Subscriber.subscribed_at, Subscriber.id)
        )
        return result.scalars().all()


class SubscriptionTokenRepository:
    """Token store: issues, resolves and consumes single-use subscription tokens."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def issue(
        self, subscriber_id: str, purpose: TokenPurpose, expires_at: datetime
    ) -> str:
        """Create a token bound to a subscriber and purpose. Returns its value."""
        token = SubscriptionToken(
            token=self._generate_token(),
            subscriber_id=subscriber_id,
            purpose=purpose.value,
            expires_at=expires_at,
        )
        self.session.add(token)
        await self.session.flush()
        return token.token

    async def resolve(self, token: str, now: datetime) -> TokenRecord | None:
        """Look up an unexpired token. Returns None for unknown or expired tokens."""
        result = await self.session.execute(
            select(
                SubscriptionToken.subscriber_id,
                SubscriptionToken.purpose,
                SubscriptionToken.consumed_at,
            ).where(
                SubscriptionToken.token == token,
                SubscriptionToken.expires_at > now,
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return TokenRecord(
            subscriber_id=row.subscriber_id,
            purpose=TokenPurpose(row.purpose),
            consumed=row.consumed_at is not None,
        )

    async def consume(self, token: str, now: datetime) -> ConsumeResult:
        """Mark a token consumed if it is still open and unexpired.

        The conditional UPDATE makes consumption exactly-once across concurrent
        transactions: the loser sees zero affected rows.
        """
        result = await self.session.execute(
            update(SubscriptionToken)
            .where(
                SubscriptionToken.token == token,
                SubscriptionToken.consumed_at.is_(None),
                SubscriptionToken.expires_at > now,
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount > 0:
            return ConsumeResult.OK

        state = await self.session.execute(
            select(SubscriptionToken.consumed_at).where(SubscriptionToken.token == token)
        )
        row = state.one_or_none()
        if row is None:
            return ConsumeResult.NOT_FOUND
        if row.consumed_at is not None:
            return ConsumeResult.ALREADY_CONSUMED
        return ConsumeResult.EXPIRED

    async def revoke(self, subscriber_id: str, purpose: TokenPurpose | None = None) -> int:
        """Delete a subscriber's unconsumed tokens, optionally of one purpose.

        Returns the number of tokens revoked.
        """
        query = delete(SubscriptionToken).where(
            SubscriptionToken.subscriber_id == subscriber_id,
            SubscriptionToken.consumed_at.is_(None),
        )
        if purpose is not None:
            query = query.where(SubscriptionToken.purpose == purpose.value)
        result = await self.session.execute(query.execution_options(synchronize_session=False))
        return result.rowcount

    def _generate_token(self) -> str:
        """Generate a secure random token for confirmation/unsubscribe."""
        return secrets.token_hex(16)  # 32 chars


class EditorRepository:
    """Repository for Editor lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, external_id: str, email: str) -> Editor:
        """Register an editor for an external identity."""
        editor = Editor(external_id=external_id, email=email)
        self.session.add(editor)
        await self.session.flush()
        return editor

    async def get_by_external_id(self, external_id: str) -> Editor | None:
        """Get editor by the subject of their verified identity token."""
        result = await self.session.execute(
            select(Editor).where(Editor.external_id == external_id)
        )
        return result.scalar_one_or_none()


class NewsletterRepository:
    """Repository for Newsletter lookups and the ownership predicate."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, editor_id: str, name: str, description: str | None = None) -> Newsletter:
        """Create a newsletter owned by an editor."""
        newsletter = Newsletter(editor_id=editor_id, name=name, description=description)
        self.session.add(newsletter)
        await self.session.flush()
        return newsletter

    async def get_by_id(self, newsletter_id: str) -> Newsletter | None:
        """Get newsletter by ID."""
        return await self.session.get(Newsletter, newsletter_id)

    async def get_owned(self, newsletter_id: str, editor_id: str) -> Newsletter | None:
        """Get a newsletter only if the editor owns it."""
        result = await self.session.execute(
            select(Newsletter).where(
                Newsletter.id == newsletter_id,
                Newsletter.editor_id == editor_id,
            )
        )
        return result.scalar_one_or_none()
