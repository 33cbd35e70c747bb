# ABOUTME: Public subscription routes for the double opt-in flow.
# ABOUTME: Handles subscribe, confirm, unsubscribe-by-token and legacy unsubscribe.

from fastapi import APIRouter, Query, Response, status

from newsletter_service.errors import ServiceError
from newsletter_service.models import MessageResponse, SubscribeRequest, SubscribeResponse
from newsletter_service.web.dependencies import SubscriptionSvc

router = APIRouter(tags=["subscriptions"])


@router.post(
    "/newsletters/{newsletter_id}/subscribe",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def subscribe(newsletter_id: str, body: SubscribeRequest, service: SubscriptionSvc):
    """Subscribe an email address; a confirmation link is mailed to it."""
    subscriber = await service.subscribe(body.email, newsletter_id)
    return SubscribeResponse(
        subscriber_id=subscriber.id,
        email=subscriber.email,
        newsletter_id=subscriber.newsletter_id,
        status=subscriber.status,
    )


@router.get("/subscribers/confirm", response_model=MessageResponse)
async def confirm(service: SubscriptionSvc, token: str | None = Query(default=None)):
    """Confirm a pending subscription."""
    if not token:
        raise ServiceError.validation("token query parameter is required")
    await service.confirm_subscription(token)
    return MessageResponse(message="Subscription confirmed successfully.")


@router.get("/subscriptions/unsubscribe", response_model=MessageResponse)
async def unsubscribe(service: SubscriptionSvc, token: str | None = Query(default=None)):
    """One-click unsubscribe from the link in the welcome email."""
    if not token:
        raise ServiceError.validation("token query parameter is required")
    await service.unsubscribe_by_token(token)
    return MessageResponse(message="Successfully unsubscribed.")


@router.delete(
    "/newsletters/{newsletter_id}/subscribers",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unsubscribe_by_email(
    newsletter_id: str,
    service: SubscriptionSvc,
    email: str | None = Query(default=None),
) -> Response:
    """Legacy unsubscribe by address, without a token."""
    if not email:
        raise ServiceError.validation("email query parameter is required")
    await service.unsubscribe_by_identity(email, newsletter_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
