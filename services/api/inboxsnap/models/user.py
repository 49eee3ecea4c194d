"""User model: identity plus subscription and usage-quota state.

The subscription and counter columns are owned by ``QuotaService``; nothing
else should write them.
"""

import enum
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inboxsnap.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_values


class SubscriptionTier(str, enum.Enum):
    FREE = "free"
    TRIAL = "trial"
    STARTER = "starter"
    PRO = "pro"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    google_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Subscription
    subscription_tier: Mapped[SubscriptionTier] = mapped_column(
        Enum(SubscriptionTier, name="subscription_tier", values_callable=enum_values),
        default=SubscriptionTier.FREE,
        nullable=False,
    )
    billing_cycle: Mapped[BillingCycle | None] = mapped_column(
        Enum(BillingCycle, name="billing_cycle", values_callable=enum_values),
        nullable=True,
    )
    trial_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Usage counters
    snapshots_created_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    emails_summarized_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_snapshots_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_emails_summarized: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_snapshot_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_usage_reset_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    oauth_token: Mapped["OAuthToken | None"] = relationship(
        "OAuthToken", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    senders: Mapped[list["Sender"]] = relationship("Sender", back_populates="user", cascade="all, delete-orphan")
    snapshots: Mapped[list["Snapshot"]] = relationship(
        "Snapshot", back_populates="user", cascade="all, delete-orphan"
    )
    audit_logs: Mapped[list["AuditLog"]] = relationship("AuditLog", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User {self.id} tier={self.subscription_tier}>"
