"""Initial schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    subscription_tier = postgresql.ENUM("free", "trial", "starter", "pro", name="subscription_tier", create_type=False)
    subscription_tier.create(op.get_bind())
    billing_cycle = postgresql.ENUM("monthly", "yearly", name="billing_cycle", create_type=False)
    billing_cycle.create(op.get_bind())
    interaction_type = postgresql.ENUM(
        "mark_ignored", "remove_inbox", "open_email", name="interaction_type", create_type=False
    )
    interaction_type.create(op.get_bind())

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("google_id", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("subscription_tier", subscription_tier, server_default="free", nullable=False),
        sa.Column("billing_cycle", billing_cycle, nullable=True),
        sa.Column("trial_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("snapshots_created_today", sa.Integer, server_default="0", nullable=False),
        sa.Column("emails_summarized_today", sa.Integer, server_default="0", nullable=False),
        sa.Column("total_snapshots_created", sa.Integer, server_default="0", nullable=False),
        sa.Column("total_emails_summarized", sa.Integer, server_default="0", nullable=False),
        sa.Column("last_snapshot_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_usage_reset_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_google_id", "users", ["google_id"])
    op.create_index("ix_users_email", "users", ["email"])

    # --- oauth_tokens ---
    op.create_table(
        "oauth_tokens",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("encrypted_access_token", sa.LargeBinary, nullable=False),
        sa.Column("encrypted_refresh_token", sa.LargeBinary, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scopes", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # --- senders ---
    op.create_table(
        "senders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email_address", sa.String(320), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("total_emails", sa.Integer, server_default="1", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_senders_user_id", "senders", ["user_id"])
    op.create_unique_constraint("uq_sender_user_email", "senders", ["user_id", "email_address"])

    # --- snapshots ---
    op.create_table(
        "snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("snapshot_date", sa.Date, nullable=False),
        sa.Column("total_items", sa.Integer, server_default="0", nullable=False),
        sa.Column("retention_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_snapshots_user_id", "snapshots", ["user_id"])
    op.create_index("ix_snapshots_snapshot_date", "snapshots", ["snapshot_date"])
    op.create_index("ix_snapshots_retention_expires_at", "snapshots", ["retention_expires_at"])

    # --- snapshot_items ---
    op.create_table(
        "snapshot_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "snapshot_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("snapshots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("senders.id"), nullable=False),
        sa.Column("provider", sa.String(50), server_default="gmail", nullable=False),
        sa.Column("message_id", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("email_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("snippet", sa.String(1000), nullable=True),
        sa.Column("is_ignored_from_snapshots", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("is_removed_from_inbox", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("open_url", sa.String(1000), nullable=True),
        sa.Column("attachments_meta", postgresql.JSONB, nullable=True),
        sa.Column("category_tags", postgresql.JSONB, nullable=True),
        sa.Column("priority_score", sa.Numeric(3, 2), nullable=False),
        sa.Column("priority_label", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("priority_score >= 0 AND priority_score <= 1", name="ck_snapshot_items_priority_score"),
    )
    op.create_index("ix_snapshot_items_snapshot_id", "snapshot_items", ["snapshot_id"])
    op.create_index("ix_snapshot_items_sender_id", "snapshot_items", ["sender_id"])
    op.create_index("ix_snapshot_items_message_id", "snapshot_items", ["message_id"])

    # --- user_interactions (no FK on snapshot_item_id: rows outlive swept items) ---
    op.create_table(
        "user_interactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("snapshot_item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action_type", interaction_type, nullable=False),
        sa.Column("action_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_user_interactions_user_id", "user_interactions", ["user_id"])
    op.create_index("ix_user_interactions_snapshot_item_id", "user_interactions", ["snapshot_item_id"])

    # --- audit_log ---
    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("user_interactions")
    op.drop_table("snapshot_items")
    op.drop_table("snapshots")
    op.drop_table("senders")
    op.drop_table("oauth_tokens")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS interaction_type")
    op.execute("DROP TYPE IF EXISTS billing_cycle")
    op.execute("DROP TYPE IF EXISTS subscription_tier")
