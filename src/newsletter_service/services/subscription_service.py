# ABOUTME: Service for managing the newsletter subscription lifecycle.
# ABOUTME: Handles subscribe, token confirmation and unsubscription with double opt-in.

from datetime import datetime, timedelta

import structlog

from newsletter_service.errors import DuplicateSubscriberError, ServiceError
from newsletter_service.models import (
    ConsumeResult,
    SubscriberStatus,
    SubscriberSummary,
    TokenPurpose,
    TokenRecord,
)
from newsletter_service.services.guard import guarded
from newsletter_service.services.ports import (
    Clock,
    NewsletterDirectory,
    SubscriberStore,
    SubscriptionNotifier,
    TokenStore,
    utc_now,
)
from newsletter_service.validation import clean_identifier, normalize_email

log = structlog.get_logger()

OPEN_STATUSES = (SubscriberStatus.PENDING, SubscriberStatus.ACTIVE)


def _short(token: str) -> str:
    return token[:8] + "..."


class SubscriptionService:
    """Subscriber state machine: pending -> active -> unsubscribed.

    Confirmation is idempotent-as-error (a second confirm reports
    ``already_confirmed``) while unsubscription is idempotent-as-success.
    All collaborators are injected; the service keeps no state between calls.
    """

    def __init__(
        self,
        subscribers: SubscriberStore,
        tokens: TokenStore,
        newsletters: NewsletterDirectory,
        notifier: SubscriptionNotifier,
        clock: Clock = utc_now,
        confirm_token_ttl: timedelta = timedelta(hours=24),
        unsubscribe_token_ttl: timedelta = timedelta(days=90),
        timeout: float | None = 10.0,
    ) -> None:
        self.subscribers = subscribers
        self.tokens = tokens
        self.newsletters = newsletters
        self.notifier = notifier
        self.clock = clock
        self.confirm_token_ttl = confirm_token_ttl
        self.unsubscribe_token_ttl = unsubscribe_token_ttl
        self.timeout = timeout

    async def subscribe(self, email: str, newsletter_id: str) -> SubscriberSummary:
        """Create a pending subscription and send its confirmation token.

        An unsubscribed address starts a new pending cycle on its existing row.

        Args:
            email: Address to subscribe.
            newsletter_id: Newsletter to subscribe to.

        Returns:
            Summary of the pending subscriber.

        Raises:
            ServiceError: VALIDATION for bad input, NOT_FOUND for an unknown
                newsletter, CONFLICT (already_subscribed) for an open
                subscription, INTERNAL if storage or delivery fails.
        """
        email = normalize_email(email)
        newsletter_id = clean_identifier(newsletter_id, "newsletter ID")

        async with guarded("subscribe", self.timeout):
            newsletter = await self.newsletters.get_by_id(newsletter_id)
            if newsletter is None:
                log.info("subscribe_newsletter_not_found", newsletter_id=newsletter_id)
                raise ServiceError.newsletter_not_found()

            now = self.clock()
            existing = await self.subscribers.get_by_email_and_newsletter(email, newsletter_id)

            if existing is None:
                try:
                    subscriber = await self.subscribers.create(email, newsletter_id, now)
                except DuplicateSubscriberError as e:
                    log.warning("already_subscribed", email=email, newsletter_id=newsletter_id)
                    raise ServiceError.already_subscribed() from e
                subscriber_id = subscriber.id
                log.info("subscriber_created", email=email, id=subscriber_id)
            elif existing.status == SubscriberStatus.UNSUBSCRIBED:
                # Resubscribe: new pending cycle, old links stop working
                restarted = await self.subscribers.transition_status(
                    existing.id,
                    (SubscriberStatus.UNSUBSCRIBED,),
                    SubscriberStatus.PENDING,
                    now,
                )
                if not restarted:
                    raise ServiceError.already_subscribed()
                await self.tokens.revoke(existing.id)
                subscriber_id = existing.id
                log.info("resubscribing", email=email, id=subscriber_id)
            else:
                log.warning(
                    "already_subscribed",
                    email=email,
                    newsletter_id=newsletter_id,
                    status=existing.status,
                )
                raise ServiceError.already_subscribed()

            token = await self.tokens.issue(
                subscriber_id, TokenPurpose.CONFIRM, now + self.confirm_token_ttl
            )
            await self.notifier.send_confirmation(email, newsletter.name, token)

        return SubscriberSummary(
            id=subscriber_id,
            email=email,
            newsletter_id=newsletter_id,
            status=SubscriberStatus.PENDING,
            subscribed_at=now,
        )

    async def confirm_subscription(self, token: str) -> SubscriberSummary:
        """Activate a pending subscriber by redeeming its confirm token.

        Raises:
            ServiceError: INVALID_OR_EXPIRED_TOKEN for unknown, expired,
                wrong-purpose or previous-cycle tokens; CONFLICT
                (already_confirmed) if the subscriber is already active or the
                token was redeemed concurrently.
        """
        token = (token or "").strip()
        if not token:
            raise ServiceError.validation("confirmation token cannot be empty")

        async with guarded("confirm_subscription", self.timeout):
            now = self.clock()
            record = await self._resolve(token, TokenPurpose.CONFIRM)
            subscriber = await self.subscribers.get_by_id(record.subscriber_id)

            if subscriber is None or subscriber.status == SubscriberStatus.UNSUBSCRIBED:
                log.warning("confirm_invalid_token", token=_short(token))
                raise ServiceError.invalid_or_expired_token()
            if subscriber.status == SubscriberStatus.ACTIVE:
                log.info("already_confirmed", email=subscriber.email)
                raise ServiceError.already_confirmed()
            if record.consumed:
                # Redeemed in an earlier cycle; the subscriber is pending again
                log.warning("confirm_stale_token", token=_short(token))
                raise ServiceError.invalid_or_expired_token()

            outcome = await self.tokens.consume(token, now)
            if outcome is ConsumeResult.ALREADY_CONSUMED:
                log.info("already_confirmed", email=subscriber.email, concurrent=True)
                raise ServiceError.already_confirmed()
            if outcome is not ConsumeResult.OK:
                log.warning("confirm_invalid_token", token=_short(token), outcome=outcome)
                raise ServiceError.invalid_or_expired_token()

            activated = await self.subscribers.transition_status(
                subscriber.id, (SubscriberStatus.PENDING,), SubscriberStatus.ACTIVE, now
            )
            if not activated:
                raise ServiceError.already_confirmed()

            log.info("subscriber_confirmed", email=subscriber.email)
            await self._send_welcome(subscriber.id, subscriber.email, subscriber.newsletter_id, now)

        return SubscriberSummary(
            id=subscriber.id,
            email=subscriber.email,
            newsletter_id=subscriber.newsletter_id,
            status=SubscriberStatus.ACTIVE,
            subscribed_at=subscriber.subscribed_at,
            confirmed_at=now,
        )

    async def unsubscribe_by_token(self, token: str) -> None:
        """Unsubscribe using an unsubscribe token.

        Succeeds without further effect if the subscriber is already unsubscribed.

        Raises:
            ServiceError: INVALID_OR_EXPIRED_TOKEN for unknown, expired or
                wrong-purpose tokens.
        """
        token = (token or "").strip()
        if not token:
            raise ServiceError.validation("unsubscribe token cannot be empty")

        async with guarded("unsubscribe_by_token", self.timeout):
            now = self.clock()
            record = await self._resolve(token, TokenPurpose.UNSUBSCRIBE)
            subscriber = await self.subscribers.get_by_id(record.subscriber_id)

            if subscriber is None:
                log.warning("unsubscribe_invalid_token", token=_short(token))
                raise ServiceError.invalid_or_expired_token()
            if subscriber.status == SubscriberStatus.UNSUBSCRIBED:
                log.info("already_unsubscribed", email=subscriber.email)
                return

            outcome = await self.tokens.consume(token, now)
            if outcome is ConsumeResult.ALREADY_CONSUMED:
                current = await self.subscribers.get_by_id(subscriber.id)
                if current is not None and current.status == SubscriberStatus.UNSUBSCRIBED:
                    log.info("already_unsubscribed", email=subscriber.email, concurrent=True)
                    return
                raise ServiceError.invalid_or_expired_token()
            if outcome is not ConsumeResult.OK:
                log.warning("unsubscribe_invalid_token", token=_short(token), outcome=outcome)
                raise ServiceError.invalid_or_expired_token()

            await self.subscribers.transition_status(
                subscriber.id, OPEN_STATUSES, SubscriberStatus.UNSUBSCRIBED, now
            )
            await self.tokens.revoke(subscriber.id, TokenPurpose.CONFIRM)

        log.info("subscriber_unsubscribed", email=subscriber.email)

    async def unsubscribe_by_identity(self, email: str, newsletter_id: str) -> None:
        """Unsubscribe an address from a newsletter without a token.

        Raises:
            ServiceError: NOT_FOUND (subscription_not_found) if the address
                never subscribed to the newsletter.
        """
        email = normalize_email(email)
        newsletter_id = clean_identifier(newsletter_id, "newsletter ID")

        async with guarded("unsubscribe_by_identity", self.timeout):
            subscriber = await self.subscribers.get_by_email_and_newsletter(email, newsletter_id)
            if subscriber is None:
                log.info("unsubscribe_subscription_not_found", email=email)
                raise ServiceError.subscription_not_found()
            if subscriber.status == SubscriberStatus.UNSUBSCRIBED:
                log.info("already_unsubscribed", email=email)
                return

            await self.subscribers.transition_status(
                subscriber.id, OPEN_STATUSES, SubscriberStatus.UNSUBSCRIBED, self.clock()
            )
            await self.tokens.revoke(subscriber.id, TokenPurpose.CONFIRM)

        log.info("subscriber_unsubscribed", email=email, legacy=True)

    async def active_emails(self, newsletter_id: str) -> list[str]:
        """Get email addresses of all active subscribers of a newsletter."""
        newsletter_id = clean_identifier(newsletter_id, "newsletter ID")

        async with guarded("active_emails", self.timeout):
            if await self.newsletters.get_by_id(newsletter_id) is None:
                raise ServiceError.newsletter_not_found()
            emails = await self.subscribers.list_active_emails(newsletter_id)
        return list(emails)

    async def _resolve(self, token: str, purpose: TokenPurpose) -> TokenRecord:
        """Resolve a token of the expected purpose or fail as invalid."""
        record = await self.tokens.resolve(token, self.clock())
        if record is None or record.purpose is not purpose:
            log.warning("invalid_token", token=_short(token), expected=purpose)
            raise ServiceError.invalid_or_expired_token()
        return record

    async def _send_welcome(
        self, subscriber_id: str, email: str, newsletter_id: str, now: datetime
    ) -> None:
        """Issue an unsubscribe token and mail it; any failure is only logged."""
        try:
            token = await self.tokens.issue(
                subscriber_id, TokenPurpose.UNSUBSCRIBE, now + self.unsubscribe_token_ttl
            )
            newsletter = await self.newsletters.get_by_id(newsletter_id)
            name = newsletter.name if newsletter else ""
            await self.notifier.send_welcome(email, name, token)
        except Exception:
            log.exception("welcome_email_failed", email=email)
