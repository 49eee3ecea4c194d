"""Snapshot generation and retrieval.

``create_snapshot`` runs one generation cycle for a user:

1. reserve a snapshot slot with the quota state machine (committed at once,
   so a later failure still consumes it)
2. fetch up to min(plan limit, global ceiling) unread messages
3. drop messages already present in any of the user's snapshots
4. create the snapshot row
5. per message, in mailbox order: resolve sender, summarize, score, persist
   (a failed or empty summary skips only that message)
6. finalize the item count and record the emails processed

No message body is persisted; items carry the summary and metadata only.
"""

import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from inboxsnap.config import Settings
from inboxsnap.exceptions import SnapshotCreationError, SnapshotNotFoundError
from inboxsnap.metrics import emails_summarized_total, snapshots_created_total, snapshots_failed_total, summaries_skipped_total
from inboxsnap.models.snapshot import PriorityLabel, Snapshot, SnapshotItem
from inboxsnap.models.user import User
from inboxsnap.services.ai_service import SnapshotSummarizer
from inboxsnap.services.gmail_parser import MailboxMessage
from inboxsnap.services.gmail_service import MailboxClient
from inboxsnap.services.priority_service import compute_priority
from inboxsnap.services.quota_service import QuotaService
from inboxsnap.services.sender_registry import SenderRegistry

logger = logging.getLogger(__name__)

NO_UNREAD_MESSAGE = "No new unread emails found."
ALL_SEEN_MESSAGE = "No new unread emails to process. All recent emails are already in existing snapshots."
NOTHING_SUMMARIZED_MESSAGE = "Could not summarize any of the new emails."
OPEN_URL_TEMPLATE = "https://mail.google.com/mail/u/0/#inbox/{message_id}"
SCOPE_TYPE = "recent"


@dataclass(frozen=True)
class CreatedSnapshot:
    id: uuid.UUID
    total_items: int
    new_emails_processed: int


@dataclass(frozen=True)
class SnapshotResult:
    success: bool
    message: str
    snapshot: CreatedSnapshot | None = None


class SnapshotService:
    def __init__(
        self,
        settings: Settings,
        quota: QuotaService,
        senders: SenderRegistry,
        mailbox: MailboxClient,
        summarizer: SnapshotSummarizer,
    ) -> None:
        self._settings = settings
        self._quota = quota
        self._senders = senders
        self._mailbox = mailbox
        self._summarizer = summarizer

    # --- Generation ---

    async def create_snapshot(self, db: AsyncSession, user: User, now: datetime | None = None) -> SnapshotResult:
        """Run one snapshot generation cycle for ``user``.

        Raises:
            QuotaExceededError: the plan does not allow another snapshot now.
            SnapshotCreationError: any unexpected failure after the slot was
                reserved; partial work is rolled back.
        """
        now = now or datetime.now(timezone.utc)
        started = time.monotonic()

        usage = await self._quota.record_snapshot_created(db, user.id, now)
        await db.commit()

        try:
            fetch_count = min(usage.max_emails_allowed, self._settings.max_emails_per_snapshot)
            messages = await self._mailbox.fetch_unread_messages(user, fetch_count)
            if not messages:
                return self._not_created(user.id, NO_UNREAD_MESSAGE, "no_unread")

            new_messages = self._filter_new(messages, await self._existing_message_ids(db, user.id))
            if not new_messages:
                return self._not_created(user.id, ALL_SEEN_MESSAGE, "all_seen")

            snapshot = await self._create_snapshot_record(db, user.id, now, fetch_count)

            created = 0
            for message in new_messages:
                if await self._process_message(db, snapshot, user.id, message) is not None:
                    created += 1

            if created == 0:
                await db.delete(snapshot)
                await db.commit()
                return self._not_created(user.id, NOTHING_SUMMARIZED_MESSAGE, "nothing_summarized")

            snapshot.total_items = created
            snapshot.extra_data = {
                **(snapshot.extra_data or {}),
                "processing_time_ms": int((time.monotonic() - started) * 1000),
            }
            await self._quota.record_emails_processed(db, user.id, created)
            await db.commit()
        except Exception as e:
            await db.rollback()
            snapshots_failed_total.labels(reason="error").inc()
            logger.error("Snapshot creation failed for user=%s: %s", user.id, type(e).__name__)
            raise SnapshotCreationError(f"Failed to create snapshot: {e}") from e

        snapshots_created_total.inc()
        emails_summarized_total.inc(created)
        logger.info(
            "Created snapshot %s for user=%s: %d items from %d new messages",
            snapshot.id,
            user.id,
            created,
            len(new_messages),
        )
        return SnapshotResult(
            success=True,
            message=f"Successfully created snapshot with {created} email summaries.",
            snapshot=CreatedSnapshot(id=snapshot.id, total_items=created, new_emails_processed=len(new_messages)),
        )

    def _not_created(self, user_id: uuid.UUID, message: str, reason: str) -> SnapshotResult:
        snapshots_failed_total.labels(reason=reason).inc()
        logger.info("No snapshot for user=%s: %s", user_id, reason)
        return SnapshotResult(success=False, message=message)

    @staticmethod
    def _filter_new(messages: list[MailboxMessage], seen: set[str]) -> list[MailboxMessage]:
        """Messages not seen before, in input order, without repeats."""
        seen = set(seen)
        fresh = []
        for message in messages:
            if message.message_id in seen:
                continue
            seen.add(message.message_id)
            fresh.append(message)
        return fresh

    async def _existing_message_ids(self, db: AsyncSession, user_id: uuid.UUID) -> set[str]:
        """Provider message ids in any of the user's snapshots."""
        result = await db.execute(
            select(SnapshotItem.message_id)
            .join(Snapshot, SnapshotItem.snapshot_id == Snapshot.id)
            .where(Snapshot.user_id == user_id)
        )
        return set(result.scalars().all())

    async def _create_snapshot_record(
        self, db: AsyncSession, user_id: uuid.UUID, now: datetime, fetch_count: int
    ) -> Snapshot:
        snapshot = Snapshot(
            id=uuid.uuid4(),
            user_id=user_id,
            snapshot_date=now.date(),
            total_items=0,
            retention_expires_at=now + timedelta(hours=self._settings.snapshot_retention_hours),
            extra_data={"scope_type": SCOPE_TYPE, "scope_value": fetch_count, "email_provider": "gmail"},
        )
        db.add(snapshot)
        await db.flush()
        return snapshot

    async def _process_message(
        self,
        db: AsyncSession,
        snapshot: Snapshot,
        user_id: uuid.UUID,
        message: MailboxMessage,
    ) -> SnapshotItem | None:
        sender = await self._senders.resolve_sender(db, user_id, message.sender_name, message.sender_email)

        summary = await self._summarizer.summarize(message.text_for_summary)
        if not summary:
            summaries_skipped_total.inc()
            logger.info("Skipping message %s for user=%s: no summary", message.message_id, user_id)
            return None

        priority = compute_priority(message.label_ids, message.headers, message.sender_email, message.size_estimate)
        item = SnapshotItem(
            snapshot_id=snapshot.id,
            sender_id=sender.id,
            provider=message.provider,
            message_id=message.message_id,
            subject=message.subject[:500],
            email_date=message.received_at,
            summary=summary,
            snippet=message.snippet,
            open_url=OPEN_URL_TEMPLATE.format(message_id=message.message_id),
            attachments_meta=message.attachments,
            priority_score=priority.score,
            priority_label=priority.label.value,
        )
        db.add(item)
        await db.flush()
        return item

    # --- Retrieval ---

    async def list_snapshots(
        self, db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None
    ) -> list[Snapshot]:
        """Unexpired snapshots, newest first. Expired rows awaiting the sweep are hidden."""
        now = now or datetime.now(timezone.utc)
        result = await db.execute(
            select(Snapshot)
            .where(Snapshot.user_id == user_id, Snapshot.retention_expires_at > now)
            .order_by(Snapshot.created_at.desc())
        )
        return list(result.scalars().all())

    async def priority_counts(self, db: AsyncSession, user_id: uuid.UUID) -> dict[uuid.UUID, dict[str, int]]:
        """Items per priority label, for each of the user's snapshots."""
        result = await db.execute(
            select(SnapshotItem.snapshot_id, SnapshotItem.priority_label, func.count())
            .join(Snapshot, SnapshotItem.snapshot_id == Snapshot.id)
            .where(Snapshot.user_id == user_id)
            .group_by(SnapshotItem.snapshot_id, SnapshotItem.priority_label)
        )
        counts: dict[uuid.UUID, dict[str, int]] = defaultdict(lambda: {label.value: 0 for label in PriorityLabel})
        for snapshot_id, label, count in result.all():
            counts[snapshot_id][label] = count
        return dict(counts)

    async def get_snapshot_with_items(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        snapshot_id: uuid.UUID,
        now: datetime | None = None,
    ) -> Snapshot:
        """Snapshot with items and senders loaded.

        Another user's snapshot, or one past its retention window, is
        reported exactly like a missing one.
        """
        now = now or datetime.now(timezone.utc)
        result = await db.execute(
            select(Snapshot)
            .where(
                Snapshot.id == snapshot_id,
                Snapshot.user_id == user_id,
                Snapshot.retention_expires_at > now,
            )
            .options(selectinload(Snapshot.items).selectinload(SnapshotItem.sender))
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            raise SnapshotNotFoundError("Snapshot not found")
        return snapshot
