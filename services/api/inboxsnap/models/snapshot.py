"""Snapshot and SnapshotItem models.

A snapshot is hard-deleted (with its items) once ``retention_expires_at``
passes. Items hold a summary of each message, never the message body.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inboxsnap.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class PriorityLabel(str, enum.Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Snapshot(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "snapshots"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    retention_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # {"scope_type": "recent", "scope_value": 50, "email_provider": "gmail", "processing_time_ms": 1234}
    extra_data: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="snapshots")
    items: Mapped[list["SnapshotItem"]] = relationship(
        "SnapshotItem",
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SnapshotItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Snapshot {self.id} user_id={self.user_id} items={self.total_items}>"


class SnapshotItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "snapshot_items"

    snapshot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("senders.id"),
        nullable=False,
        index=True,
    )
    provider: Mapped[str] = mapped_column(String(50), default="gmail", nullable=False)
    message_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    email_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    snippet: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_ignored_from_snapshots: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_removed_from_inbox: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    open_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    # [{"filename": "...", "mime_type": "...", "size": 123}], never the attachment bytes
    attachments_meta: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    category_tags: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    priority_score: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False)
    priority_label: Mapped[str] = mapped_column(String(20), nullable=False)

    snapshot: Mapped["Snapshot"] = relationship("Snapshot", back_populates="items")
    sender: Mapped["Sender"] = relationship("Sender")

    def __repr__(self) -> str:
        return f"<SnapshotItem {self.message_id} snapshot_id={self.snapshot_id}>"
