# ABOUTME: Service for listing a newsletter's active subscribers to its editor.
# ABOUTME: Resolves the editor, enforces ownership and paginates the result.

import structlog

from newsletter_service.errors import ServiceError
from newsletter_service.models import SubscriberPage, SubscriberSummary
from newsletter_service.services.guard import guarded
from newsletter_service.services.ports import EditorDirectory, NewsletterDirectory, SubscriberStore
from newsletter_service.validation import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    clean_identifier,
    parse_int_param,
    resolve_page_window,
)

log = structlog.get_logger()


class SubscriberListingService:
    """Authorization-gated, paginated view of active subscribers."""

    def __init__(
        self,
        editors: EditorDirectory,
        newsletters: NewsletterDirectory,
        subscribers: SubscriberStore,
        default_limit: int = DEFAULT_PAGE_LIMIT,
        max_limit: int = MAX_PAGE_LIMIT,
        timeout: float | None = 10.0,
    ) -> None:
        self.editors = editors
        self.newsletters = newsletters
        self.subscribers = subscribers
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.timeout = timeout

    async def list_active_subscribers(
        self,
        identity: str | None,
        newsletter_id: str,
        limit: int | str | None = None,
        offset: int | str | None = None,
    ) -> SubscriberPage:
        """List one page of a newsletter's active subscribers.

        A newsletter the editor does not own is reported exactly like a
        missing one, so its existence is never revealed to non-owners.

        Args:
            identity: Verified external identity of the caller.
            newsletter_id: Newsletter whose subscribers are listed.
            limit: Page size, as an int or raw query string; defaults to 10
                and is clamped to 100.
            offset: Number of subscribers to skip; defaults to 0.

        Returns:
            The page with the total count of active subscribers.

        Raises:
            ServiceError: UNAUTHORIZED for an unknown identity, NOT_FOUND for a
                missing or foreign newsletter, VALIDATION for bad paging.
        """
        if not identity:
            raise ServiceError.unauthorized()

        async with guarded("list_active_subscribers", self.timeout):
            editor = await self.editors.get_by_external_id(identity)
            if editor is None:
                log.warning("listing_unknown_editor")
                raise ServiceError.unauthorized()

            newsletter_id = clean_identifier(newsletter_id, "newsletter ID")
            newsletter = await self.newsletters.get_owned(newsletter_id, editor.id)
            if newsletter is None:
                log.warning(
                    "listing_newsletter_not_owned",
                    editor_id=editor.id,
                    newsletter_id=newsletter_id,
                )
                raise ServiceError.newsletter_not_found()

            limit, offset = resolve_page_window(
                parse_int_param(limit, "limit"),
                parse_int_param(offset, "offset"),
                self.default_limit,
                self.max_limit,
            )
            rows = await self.subscribers.list_active_by_newsletter(newsletter_id, limit, offset)
            total = await self.subscribers.count_active_by_newsletter(newsletter_id)

        log.debug(
            "subscribers_listed",
            newsletter_id=newsletter_id,
            returned=len(rows),
            total=total,
        )
        return SubscriberPage(
            data=[SubscriberSummary.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )
