"""Append-only log of user actions on snapshot items.

``snapshot_item_id`` deliberately has no foreign key: interactions are kept
after the retention sweep removes the item they point at, so readers must
tolerate a dangling id.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from inboxsnap.models.base import Base, UUIDPrimaryKeyMixin, enum_values


class InteractionType(str, enum.Enum):
    MARK_IGNORED = "mark_ignored"
    REMOVE_INBOX = "remove_inbox"
    OPEN_EMAIL = "open_email"


class UserInteraction(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "user_interactions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    snapshot_item_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    action_type: Mapped[InteractionType] = mapped_column(
        Enum(InteractionType, name="interaction_type", values_callable=enum_values),
        nullable=False,
    )
    action_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default="now()",
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserInteraction {self.action_type} item={self.snapshot_item_id}>"
