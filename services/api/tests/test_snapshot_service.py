"""Tests for snapshot generation and retrieval."""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.dml import Update

from inboxsnap.exceptions import (
    MailboxError,
    QuotaDenialReason,
    QuotaExceededError,
    SnapshotCreationError,
    SnapshotNotFoundError,
)
from inboxsnap.models.sender import Sender
from inboxsnap.models.snapshot import PriorityLabel, Snapshot, SnapshotItem
from inboxsnap.models.user import SubscriptionTier
from inboxsnap.services.ai_service import SnapshotSummarizer
from inboxsnap.services.quota_service import QuotaService
from inboxsnap.services.sender_registry import SenderRegistry
from inboxsnap.services.snapshot_service import (
    ALL_SEEN_MESSAGE,
    NO_UNREAD_MESSAGE,
    NOTHING_SUMMARIZED_MESSAGE,
    SnapshotService,
)


def _mock_db(user, seen_message_ids=()):
    """Session whose queries return ``user`` for the row lock and ``seen_message_ids`` for dedup."""
    db = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    result.scalars.return_value.all.return_value = list(seen_message_ids)
    db.execute = AsyncMock(return_value=result)
    db.add = MagicMock()
    return db


def _added(db, model):
    return [c[0][0] for c in db.add.call_args_list if isinstance(c[0][0], model)]


def _executed_updates(db):
    return [c[0][0] for c in db.execute.call_args_list if isinstance(c[0][0], Update)]


@pytest.fixture
def mailbox():
    mock = MagicMock()
    mock.fetch_unread_messages = AsyncMock(return_value=[])
    mock.remove_from_inbox = AsyncMock()
    return mock


@pytest.fixture
def summarizer():
    mock = MagicMock(spec=SnapshotSummarizer)
    mock.summarize = AsyncMock(return_value="* Review the contract\n* Due Friday")
    return mock


@pytest.fixture
def senders():
    sender = MagicMock(spec=Sender)
    sender.id = uuid.uuid4()
    registry = MagicMock(spec=SenderRegistry)
    registry.resolve_sender = AsyncMock(return_value=sender)
    return registry


@pytest.fixture
def service(settings, senders, mailbox, summarizer):
    return SnapshotService(settings, QuotaService(settings), senders, mailbox, summarizer)


@pytest.fixture
def trial_user(user_factory, now):
    return user_factory(
        SubscriptionTier.TRIAL,
        trial_started_at=now - timedelta(days=1),
        trial_expires_at=now + timedelta(days=6),
    )


class TestCreateSnapshot:
    @pytest.mark.asyncio
    async def test_trial_user_three_messages(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [
            message_factory("msg_star", labels=["INBOX", "STARRED"]),
            message_factory("msg_promo", labels=["INBOX", "CATEGORY_PROMOTIONS"]),
            message_factory("msg_plain", labels=["INBOX"]),
        ]
        db = _mock_db(trial_user)

        result = await service.create_snapshot(db, trial_user, now)

        assert result.success
        assert result.snapshot.total_items == 3
        assert result.snapshot.new_emails_processed == 3
        assert result.message == "Successfully created snapshot with 3 email summaries."
        assert trial_user.snapshots_created_today == 1

        items = {item.message_id: item for item in _added(db, SnapshotItem)}
        assert PriorityLabel(items["msg_star"].priority_label) in (PriorityLabel.HIGH, PriorityLabel.URGENT)
        assert items["msg_promo"].priority_label == PriorityLabel.LOW.value
        assert items["msg_plain"].priority_label == PriorityLabel.MEDIUM.value

    @pytest.mark.asyncio
    async def test_fetch_count_is_plan_limit(self, service, mailbox, trial_user, now):
        db = _mock_db(trial_user)
        await service.create_snapshot(db, trial_user, now)
        mailbox.fetch_unread_messages.assert_awaited_once_with(trial_user, 20)

    @pytest.mark.asyncio
    async def test_fetch_count_capped_by_global_ceiling(
        self, settings, senders, mailbox, summarizer, user_factory, now
    ):
        settings.max_emails_per_snapshot = 10
        service = SnapshotService(settings, QuotaService(settings), senders, mailbox, summarizer)
        user = user_factory(SubscriptionTier.PRO)

        await service.create_snapshot(_mock_db(user), user, now)

        mailbox.fetch_unread_messages.assert_awaited_once_with(user, 10)

    @pytest.mark.asyncio
    async def test_snapshot_record(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001")]
        db = _mock_db(trial_user)

        result = await service.create_snapshot(db, trial_user, now)

        [snapshot] = _added(db, Snapshot)
        assert snapshot.id == result.snapshot.id
        assert snapshot.user_id == trial_user.id
        assert snapshot.snapshot_date == now.date()
        assert snapshot.retention_expires_at == now + timedelta(hours=72)
        assert snapshot.total_items == 1
        assert snapshot.extra_data["scope_type"] == "recent"
        assert snapshot.extra_data["scope_value"] == 20
        assert snapshot.extra_data["email_provider"] == "gmail"
        assert "processing_time_ms" in snapshot.extra_data

    @pytest.mark.asyncio
    async def test_item_fields(self, service, mailbox, senders, trial_user, message_factory, now):
        message = message_factory("msg_001")
        message.attachments = [{"filename": "contract.pdf", "mime_type": "application/pdf", "size": 1200}]
        mailbox.fetch_unread_messages.return_value = [message]
        db = _mock_db(trial_user)

        await service.create_snapshot(db, trial_user, now)

        [item] = _added(db, SnapshotItem)
        assert item.summary == "* Review the contract\n* Due Friday"
        assert item.sender_id == senders.resolve_sender.return_value.id
        assert item.open_url == "https://mail.google.com/mail/u/0/#inbox/msg_001"
        assert item.attachments_meta == [{"filename": "contract.pdf", "mime_type": "application/pdf", "size": 1200}]
        assert item.email_date == message.received_at
        assert 0.0 <= item.priority_score <= 1.0
        assert not hasattr(item, "body_text")

    @pytest.mark.asyncio
    async def test_emails_processed_recorded(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("a"), message_factory("b")]
        db = _mock_db(trial_user)

        await service.create_snapshot(db, trial_user, now)

        [update] = _executed_updates(db)
        params = update.compile(dialect=postgresql.dialect()).params
        assert 2 in params.values()

    @pytest.mark.asyncio
    async def test_slot_committed_before_fetch(self, service, mailbox, trial_user, now):
        db = _mock_db(trial_user)
        calls = []
        db.commit = AsyncMock(side_effect=lambda: calls.append("commit"))
        mailbox.fetch_unread_messages = AsyncMock(side_effect=lambda *a: calls.append("fetch") or [])

        await service.create_snapshot(db, trial_user, now)

        assert calls[:2] == ["commit", "fetch"]


class TestQuotaGate:
    @pytest.mark.asyncio
    async def test_free_user_refused_before_fetch(self, service, mailbox, user_factory, now):
        user = user_factory(SubscriptionTier.FREE)

        with pytest.raises(QuotaExceededError) as exc_info:
            await service.create_snapshot(_mock_db(user), user, now)

        assert exc_info.value.reason == QuotaDenialReason.NO_ACTIVE_ACCESS
        mailbox.fetch_unread_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_call_at_cap_refused(self, service, mailbox, user_factory, message_factory, now):
        user = user_factory(SubscriptionTier.STARTER, snapshots_created_today=4, total_snapshots_created=4)
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001")]
        db = _mock_db(user)

        first = await service.create_snapshot(db, user, now)
        assert first.success

        with pytest.raises(QuotaExceededError) as exc_info:
            await service.create_snapshot(db, user, now)

        assert exc_info.value.reason == QuotaDenialReason.DAILY_LIMIT_REACHED
        assert len(_added(db, Snapshot)) == 1
        db.delete.assert_not_awaited()


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_skips_already_snapshotted(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001"), message_factory("msg_002")]
        db = _mock_db(trial_user, seen_message_ids=["msg_001"])

        result = await service.create_snapshot(db, trial_user, now)

        assert result.snapshot.new_emails_processed == 1
        assert [item.message_id for item in _added(db, SnapshotItem)] == ["msg_002"]

    @pytest.mark.asyncio
    async def test_all_seen_consumes_slot(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001")]
        db = _mock_db(trial_user, seen_message_ids=["msg_001"])

        result = await service.create_snapshot(db, trial_user, now)

        assert not result.success
        assert result.message == ALL_SEEN_MESSAGE
        assert result.snapshot is None
        assert _added(db, Snapshot) == []
        assert trial_user.snapshots_created_today == 1

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_one_fetch(self, service, mailbox, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001"), message_factory("msg_001")]
        db = _mock_db(trial_user)

        result = await service.create_snapshot(db, trial_user, now)

        assert result.snapshot.total_items == 1

    @pytest.mark.asyncio
    async def test_no_unread(self, service, trial_user, now):
        result = await service.create_snapshot(_mock_db(trial_user), trial_user, now)
        assert not result.success
        assert result.message == NO_UNREAD_MESSAGE


class TestSummarizationFailures:
    @pytest.mark.asyncio
    async def test_failed_summary_skips_message(
        self, service, mailbox, summarizer, senders, trial_user, message_factory, now
    ):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001"), message_factory("msg_002")]
        summarizer.summarize.side_effect = [None, "* Second"]
        db = _mock_db(trial_user)

        result = await service.create_snapshot(db, trial_user, now)

        assert result.success
        assert result.snapshot.total_items == 1
        assert result.snapshot.new_emails_processed == 2
        assert [item.message_id for item in _added(db, SnapshotItem)] == ["msg_002"]
        assert senders.resolve_sender.await_count == 2

    @pytest.mark.asyncio
    async def test_nothing_summarized_deletes_snapshot(
        self, service, mailbox, summarizer, trial_user, message_factory, now
    ):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001"), message_factory("msg_002")]
        summarizer.summarize.return_value = None
        db = _mock_db(trial_user)

        result = await service.create_snapshot(db, trial_user, now)

        assert not result.success
        assert result.message == NOTHING_SUMMARIZED_MESSAGE
        [snapshot] = _added(db, Snapshot)
        db.delete.assert_awaited_once_with(snapshot)
        assert _executed_updates(db) == []
        assert trial_user.snapshots_created_today == 1


class TestErrorHandling:
    @pytest.mark.asyncio
    async def test_mailbox_failure_wrapped(self, service, mailbox, trial_user, now):
        mailbox.fetch_unread_messages.side_effect = MailboxError("Gmail fetch failed: HttpError")
        db = _mock_db(trial_user)

        with pytest.raises(SnapshotCreationError) as exc_info:
            await service.create_snapshot(db, trial_user, now)

        assert str(exc_info.value).startswith("Failed to create snapshot:")
        db.rollback.assert_awaited_once()
        assert trial_user.snapshots_created_today == 1

    @pytest.mark.asyncio
    async def test_storage_failure_wrapped(self, service, mailbox, senders, trial_user, message_factory, now):
        mailbox.fetch_unread_messages.return_value = [message_factory("msg_001")]
        senders.resolve_sender.side_effect = RuntimeError("deadlock detected")
        db = _mock_db(trial_user)

        with pytest.raises(SnapshotCreationError, match="deadlock detected"):
            await service.create_snapshot(db, trial_user, now)

        db.rollback.assert_awaited_once()


class TestRetrieval:
    @pytest.mark.asyncio
    async def test_other_users_snapshot_is_not_found(self, service):
        db = _mock_db(None)

        with pytest.raises(SnapshotNotFoundError):
            await service.get_snapshot_with_items(db, uuid.uuid4(), uuid.uuid4())

        sql = str(db.execute.call_args[0][0].compile(dialect=postgresql.dialect()))
        assert "snapshots.user_id = " in sql
        assert "snapshots.id = " in sql

    @pytest.mark.asyncio
    async def test_get_returns_snapshot(self, service):
        snapshot = MagicMock(spec=Snapshot)
        db = _mock_db(snapshot)

        assert await service.get_snapshot_with_items(db, uuid.uuid4(), uuid.uuid4()) is snapshot

    @pytest.mark.asyncio
    async def test_priority_counts(self, service):
        snapshot_id = uuid.uuid4()
        db = AsyncMock()
        result = MagicMock()
        result.all.return_value = [(snapshot_id, "urgent", 2), (snapshot_id, "low", 1)]
        db.execute = AsyncMock(return_value=result)

        counts = await service.priority_counts(db, uuid.uuid4())

        assert counts == {snapshot_id: {"urgent": 2, "high": 0, "medium": 0, "low": 1}}

    @pytest.mark.asyncio
    async def test_list_snapshots_newest_first(self, service):
        db = _mock_db(None)
        await service.list_snapshots(db, uuid.uuid4())
        sql = str(db.execute.call_args[0][0].compile(dialect=postgresql.dialect()))
        assert "ORDER BY snapshots.created_at DESC" in sql

    @pytest.mark.asyncio
    async def test_list_hides_expired_snapshots(self, service, now):
        db = _mock_db(None)
        await service.list_snapshots(db, uuid.uuid4(), now)

        compiled = db.execute.call_args[0][0].compile(dialect=postgresql.dialect())
        assert "snapshots.retention_expires_at > " in str(compiled)
        assert now in compiled.params.values()

    @pytest.mark.asyncio
    async def test_expired_snapshot_is_not_found(self, service, now):
        db = _mock_db(None)

        with pytest.raises(SnapshotNotFoundError):
            await service.get_snapshot_with_items(db, uuid.uuid4(), uuid.uuid4(), now)

        compiled = db.execute.call_args[0][0].compile(dialect=postgresql.dialect())
        assert "snapshots.retention_expires_at > " in str(compiled)
        assert now in compiled.params.values()
