# ABOUTME: Editor-only route listing a newsletter's active subscribers.
# ABOUTME: Requires a verified bearer token and paginates with limit/offset.

from fastapi import APIRouter, Query

from newsletter_service.models import SubscriberPage
from newsletter_service.web.dependencies import ListingSvc
from newsletter_service.web.middleware.auth import EditorIdentity

router = APIRouter(tags=["subscribers"])


@router.get("/newsletters/{newsletter_id}/subscribers", response_model=SubscriberPage)
async def list_subscribers(
    newsletter_id: str,
    editor_uid: EditorIdentity,
    service: ListingSvc,
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
):
    """List active subscribers of a newsletter owned by the calling editor.

    Paging values are passed through raw so ownership is checked before they
    are parsed.
    """
    return await service.list_active_subscribers(
        editor_uid, newsletter_id, limit=limit, offset=offset
    )
