"""Initial schema: editors, newsletters, subscribers and subscription tokens.

Revision ID: 001
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

subscriber_status_enum = sa.Enum(
    "pending", "active", "unsubscribed", name="subscriber_status_enum"
)
token_purpose_enum = sa.Enum("confirm", "unsubscribe", name="token_purpose_enum")


def upgrade() -> None:
    op.create_table(
        "editors",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "newsletters",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("editor_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["editor_id"], ["editors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("editor_id", "name", name="uq_newsletters_editor_name"),
    )

    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("newsletter_id", sa.String(length=36), nullable=False),
        sa.Column("status", subscriber_status_enum, nullable=False, server_default="pending"),
        sa.Column("subscribed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsubscribed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["newsletter_id"], ["newsletters.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", "newsletter_id", name="uq_subscribers_email_newsletter"),
    )
    op.create_index(
        "ix_subscribers_newsletter_status",
        "subscribers",
        ["newsletter_id", "status"],
        unique=False,
    )

    op.create_table(
        "subscription_tokens",
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("subscriber_id", sa.String(length=36), nullable=False),
        sa.Column("purpose", token_purpose_enum, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscriber_id"], ["subscribers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("token"),
    )
    op.create_index(
        "ix_subscription_tokens_subscriber_purpose",
        "subscription_tokens",
        ["subscriber_id", "purpose"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_subscription_tokens_subscriber_purpose", table_name="subscription_tokens"
    )
    op.drop_table("subscription_tokens")
    op.drop_index("ix_subscribers_newsletter_status", table_name="subscribers")
    op.drop_table("subscribers")
    op.drop_table("newsletters")
    op.drop_table("editors")
    token_purpose_enum.drop(op.get_bind(), checkfirst=True)
    subscriber_status_enum.drop(op.get_bind(), checkfirst=True)
