"""User actions on snapshot items.

Every action appends a ``UserInteraction`` row. Interactions outlive the
items they reference; the row keeps only the item id.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.exceptions import SnapshotItemNotFoundError
from inboxsnap.models.snapshot import Snapshot, SnapshotItem
from inboxsnap.models.user import User
from inboxsnap.models.user_interaction import InteractionType, UserInteraction
from inboxsnap.services.audit_service import write_audit_log
from inboxsnap.services.gmail_service import MailboxClient

logger = logging.getLogger(__name__)


async def get_owned_item(db: AsyncSession, user_id: uuid.UUID, item_id: uuid.UUID) -> SnapshotItem:
    """Load an item through its snapshot's owner; foreign items look missing."""
    result = await db.execute(
        select(SnapshotItem)
        .join(Snapshot, SnapshotItem.snapshot_id == Snapshot.id)
        .where(SnapshotItem.id == item_id, Snapshot.user_id == user_id)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise SnapshotItemNotFoundError("Snapshot item not found")
    return item


async def record_interaction(
    db: AsyncSession,
    user_id: uuid.UUID,
    item_id: uuid.UUID,
    action: InteractionType,
) -> UserInteraction:
    interaction = UserInteraction(user_id=user_id, snapshot_item_id=item_id, action_type=action)
    db.add(interaction)
    await db.flush()
    return interaction


class InteractionService:
    """Ignore, remove-from-inbox and open actions on snapshot items."""

    def __init__(self, mailbox: MailboxClient | None = None) -> None:
        self._mailbox = mailbox

    async def ignore_item(self, db: AsyncSession, user: User, item_id: uuid.UUID) -> SnapshotItem:
        item = await get_owned_item(db, user.id, item_id)
        item.is_ignored_from_snapshots = True
        await record_interaction(db, user.id, item.id, InteractionType.MARK_IGNORED)
        await write_audit_log(
            db,
            user_id=user.id,
            action="snapshot_item.ignored",
            entity_type="snapshot_item",
            entity_id=str(item.id),
        )
        logger.info("User %s ignored item %s", user.id, item.id)
        return item

    async def remove_item(self, db: AsyncSession, user: User, item_id: uuid.UUID) -> SnapshotItem:
        """Archive the message in the mailbox, then flag the item.

        ``MailboxError`` propagates and leaves the item unflagged.
        """
        if self._mailbox is None:
            raise RuntimeError("InteractionService needs a mailbox to remove items")
        item = await get_owned_item(db, user.id, item_id)
        if not item.is_removed_from_inbox:
            await self._mailbox.remove_from_inbox(user, item.message_id)
            item.is_removed_from_inbox = True
        await record_interaction(db, user.id, item.id, InteractionType.REMOVE_INBOX)
        await write_audit_log(
            db,
            user_id=user.id,
            action="snapshot_item.removed_from_inbox",
            entity_type="snapshot_item",
            entity_id=str(item.id),
        )
        logger.info("User %s removed item %s from inbox", user.id, item.id)
        return item

    async def open_item(self, db: AsyncSession, user: User, item_id: uuid.UUID) -> SnapshotItem:
        item = await get_owned_item(db, user.id, item_id)
        await record_interaction(db, user.id, item.id, InteractionType.OPEN_EMAIL)
        return item
