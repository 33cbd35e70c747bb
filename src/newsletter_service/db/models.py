# ABOUTME: SQLAlchemy ORM models for newsletter subscription persistence.
# ABOUTME: Defines Editor, Newsletter, Subscriber and SubscriptionToken tables.

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from newsletter_service.models import SubscriberStatus, TokenPurpose


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Editor(Base):
    """An editor authenticated through an external identity provider."""

    __tablename__ = "editors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    newsletters: Mapped[list["Newsletter"]] = relationship(
        "Newsletter", back_populates="editor", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Editor {self.email}>"


class Newsletter(Base):
    """A newsletter owned by one editor."""

    __tablename__ = "newsletters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    editor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("editors.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    editor: Mapped[Editor] = relationship("Editor", back_populates="newsletters")

    __table_args__ = (UniqueConstraint("editor_id", "name", name="uq_newsletters_editor_name"),)

    def __repr__(self) -> str:
        return f"<Newsletter {self.id[:8]}: {self.name[:40]}>"


class Subscriber(Base):
    """A subscriber of one newsletter, moving pending -> active -> unsubscribed."""

    __tablename__ = "subscribers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    newsletter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("newsletters.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Enum(
            SubscriberStatus.PENDING.value,
            SubscriberStatus.ACTIVE.value,
            SubscriberStatus.UNSUBSCRIBED.value,
            name="subscriber_status_enum",
        ),
        nullable=False,
        default=SubscriberStatus.PENDING.value,
    )
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unsubscribed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("email", "newsletter_id", name="uq_subscribers_email_newsletter"),
        Index("ix_subscribers_newsletter_status", "newsletter_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Subscriber {self.email} ({self.status})>"


class SubscriptionToken(Base):
    """A single-use token bound to a subscriber and a purpose."""

    __tablename__ = "subscription_tokens"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    subscriber_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subscribers.id", ondelete="CASCADE"), nullable=False
    )
    purpose: Mapped[str] = mapped_column(
        Enum(
            TokenPurpose.CONFIRM.value,
            TokenPurpose.UNSUBSCRIBE.value,
            name="token_purpose_enum",
        ),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (Index("ix_subscription_tokens_subscriber_purpose", "subscriber_id", "purpose"),)

    def __repr__(self) -> str:
        state = "consumed" if self.consumed_at else "open"
        return f"<SubscriptionToken {self.token[:8]}... {self.purpose} ({state})>"
