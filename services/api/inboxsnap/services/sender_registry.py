"""Per-user sender directory.

Resolution is a single ``INSERT ... ON CONFLICT DO UPDATE`` against the
``uq_sender_user_email`` constraint, so concurrent resolutions for the same
(user, address) pair converge on one row and every call counts exactly once.
"""

import logging
import uuid

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.models.sender import Sender
from inboxsnap.services.priority_service import sender_domain

logger = logging.getLogger(__name__)

# Column widths of Sender.name, email_address and domain
NAME_MAX_LEN = 255
EMAIL_MAX_LEN = 320
DOMAIN_MAX_LEN = 255


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def build_resolve_statement(user_id: uuid.UUID, name: str, email: str):
    """Upsert statement that creates the sender or bumps its email count."""
    address = normalize_email(email)[:EMAIL_MAX_LEN]
    stmt = pg_insert(Sender).values(
        id=uuid.uuid4(),
        user_id=user_id,
        name=((name or "").strip() or address)[:NAME_MAX_LEN],
        email_address=address,
        domain=sender_domain(address)[:DOMAIN_MAX_LEN],
        total_emails=1,
    )
    return (
        stmt.on_conflict_do_update(
            constraint="uq_sender_user_email",
            set_={"total_emails": Sender.total_emails + 1},
        )
        .returning(Sender)
        .execution_options(populate_existing=True)
    )


class SenderRegistry:
    """Resolves message senders to per-user ``Sender`` rows."""

    async def resolve_sender(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        email: str,
    ) -> Sender:
        result = await db.execute(build_resolve_statement(user_id, name, email))
        sender = result.scalar_one()
        logger.debug("Resolved sender %s for user=%s (total=%d)", sender.id, user_id, sender.total_emails)
        return sender
