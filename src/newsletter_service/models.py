# ABOUTME: Pydantic models and enums shared across services and the web layer.
# ABOUTME: Defines subscriber statuses, token purposes, token records and API payloads.

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SubscriberStatus(StrEnum):
    """Lifecycle states of a subscriber."""

    PENDING = "pending"
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"


class TokenPurpose(StrEnum):
    """What a subscription token may be redeemed for."""

    CONFIRM = "confirm"
    UNSUBSCRIBE = "unsubscribe"


class ConsumeResult(StrEnum):
    """Outcome of an attempt to consume a token."""

    OK = "ok"
    ALREADY_CONSUMED = "already_consumed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenRecord:
    """A resolved, unexpired token."""

    subscriber_id: str
    purpose: TokenPurpose
    consumed: bool


class SubscribeRequest(BaseModel):
    """Body of a subscribe request."""

    email: str


class SubscribeResponse(BaseModel):
    """Summary returned after a successful subscribe."""

    subscriber_id: str
    email: str
    newsletter_id: str
    status: SubscriberStatus


class SubscriberSummary(BaseModel):
    """Public view of a subscriber row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    newsletter_id: str
    status: SubscriberStatus
    subscribed_at: datetime | None = None
    confirmed_at: datetime | None = None


class SubscriberPage(BaseModel):
    """One pagination window of active subscribers."""

    data: list[SubscriberSummary] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class ErrorResponse(BaseModel):
    """Standard JSON error body."""

    error: str
    message: str
