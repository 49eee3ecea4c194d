"""Per-user sender directory."""

import uuid

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inboxsnap.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Sender(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "senders"
    __table_args__ = (
        UniqueConstraint("user_id", "email_address", name="uq_sender_user_email"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email_address: Mapped[str] = mapped_column(String(320), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    total_emails: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="senders")

    def __repr__(self) -> str:
        return f"<Sender {self.domain} user_id={self.user_id} total={self.total_emails}>"
