"""Tests for snapshot routes: creation outcomes, retrieval, item actions."""

import uuid
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from inboxsnap.exceptions import (
    MailboxError,
    QuotaDenialReason,
    QuotaExceededError,
    SnapshotCreationError,
    SnapshotItemNotFoundError,
    SnapshotNotFoundError,
)
from inboxsnap.routers.snapshots import router
from inboxsnap.services.snapshot_service import ALL_SEEN_MESSAGE, CreatedSnapshot, SnapshotResult

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _snapshot(items=()):
    return SimpleNamespace(
        id=uuid.uuid4(),
        snapshot_date=date(2026, 3, 10),
        total_items=len(items),
        retention_expires_at=NOW + timedelta(hours=72),
        created_at=NOW,
        extra_data={"scope_type": "recent", "scope_value": 20},
        items=list(items),
    )


def _item(label="high", score=0.6):
    return SimpleNamespace(
        id=uuid.uuid4(),
        snapshot_id=uuid.uuid4(),
        provider="gmail",
        message_id="msg_001",
        subject="Contract review",
        email_date=datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc),
        summary="* Review the contract by Friday",
        snippet="Please review",
        is_ignored_from_snapshots=False,
        is_removed_from_inbox=False,
        open_url="https://mail.google.com/mail/u/0/#inbox/msg_001",
        attachments_meta=[{"filename": "contract.pdf", "mime_type": "application/pdf", "size": 1024}],
        priority_score=score,
        priority_label=label,
        sender=SimpleNamespace(
            id=uuid.uuid4(),
            name="Alice Smith",
            email_address="alice@company.example",
            domain="company.example",
            total_emails=4,
        ),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db():
    return AsyncMock()


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def mailbox():
    mailbox = MagicMock()
    mailbox.remove_from_inbox = AsyncMock()
    return mailbox


@pytest.fixture
def client(mock_db, service, mailbox, user_factory):
    from inboxsnap.dependencies import get_current_user, get_db, get_mailbox_client, get_snapshot_service

    app = FastAPI()
    app.include_router(router, prefix="/api/v1")

    async def _get_db():
        yield mock_db

    app.dependency_overrides[get_current_user] = lambda: user_factory()
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_snapshot_service] = lambda: service
    app.dependency_overrides[get_mailbox_client] = lambda: mailbox
    return TestClient(app)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateSnapshot:
    def test_success(self, client, service):
        snapshot_id = uuid.uuid4()
        service.create_snapshot = AsyncMock(
            return_value=SnapshotResult(
                success=True,
                message="Successfully created snapshot with 3 email summaries.",
                snapshot=CreatedSnapshot(id=snapshot_id, total_items=3, new_emails_processed=3),
            )
        )

        resp = client.post("/api/v1/snapshots")

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["snapshot"] == {"id": str(snapshot_id), "total_items": 3, "new_emails_processed": 3}

    def test_nothing_new_is_not_an_error(self, client, service):
        service.create_snapshot = AsyncMock(return_value=SnapshotResult(success=False, message=ALL_SEEN_MESSAGE))

        resp = client.post("/api/v1/snapshots")

        assert resp.status_code == 200
        assert resp.json() == {"success": False, "message": ALL_SEEN_MESSAGE, "snapshot": None}

    def test_quota_refusal_is_403(self, client, service):
        service.create_snapshot = AsyncMock(
            side_effect=QuotaExceededError(QuotaDenialReason.TRIAL_EXPIRED)
        )

        resp = client.post("/api/v1/snapshots")

        assert resp.status_code == 403
        detail = resp.json()["detail"]
        assert detail["reason"] == "trial_expired"
        assert "expired" in detail["message"]

    def test_creation_failure_is_400(self, client, service):
        service.create_snapshot = AsyncMock(side_effect=SnapshotCreationError("Failed to create snapshot: boom"))

        resp = client.post("/api/v1/snapshots")

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Failed to create snapshot: boom"


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class TestListSnapshots:
    def test_includes_priority_counts(self, client, service):
        first, second = _snapshot(), _snapshot()
        service.list_snapshots = AsyncMock(return_value=[first, second])
        service.priority_counts = AsyncMock(
            return_value={first.id: {"urgent": 1, "high": 2, "medium": 0, "low": 3}}
        )

        resp = client.get("/api/v1/snapshots")

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert data["snapshots"][0]["priority_counts"] == {"urgent": 1, "high": 2, "medium": 0, "low": 3}
        assert data["snapshots"][0]["scope_type"] == "recent"
        assert data["snapshots"][1]["priority_counts"] == {"urgent": 0, "high": 0, "medium": 0, "low": 0}


class TestGetSnapshot:
    def test_with_items(self, client, service):
        snapshot = _snapshot([_item("high", 0.6), _item("low", 0.1)])
        service.get_snapshot_with_items = AsyncMock(return_value=snapshot)

        resp = client.get(f"/api/v1/snapshots/{snapshot.id}")

        assert resp.status_code == 200
        data = resp.json()
        assert len(data["items"]) == 2
        assert data["items"][0]["sender"]["email_address"] == "alice@company.example"
        assert data["items"][0]["attachments_meta"][0]["filename"] == "contract.pdf"
        assert data["priority_counts"]["high"] == 1
        assert data["priority_counts"]["low"] == 1

    def test_not_found(self, client, service):
        service.get_snapshot_with_items = AsyncMock(side_effect=SnapshotNotFoundError("nope"))

        resp = client.get(f"/api/v1/snapshots/{uuid.uuid4()}")

        assert resp.status_code == 404

    def test_invalid_id(self, client):
        resp = client.get("/api/v1/snapshots/not-a-uuid")
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Item actions
# ---------------------------------------------------------------------------


class TestItemActions:
    def test_ignore(self, client):
        item = _item()
        item.is_ignored_from_snapshots = True
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            cls.return_value.ignore_item = AsyncMock(return_value=item)
            resp = client.post(f"/api/v1/snapshots/items/{item.id}/ignore")

        assert resp.status_code == 200
        assert resp.json()["is_ignored_from_snapshots"] is True

    def test_ignore_not_found(self, client):
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            cls.return_value.ignore_item = AsyncMock(side_effect=SnapshotItemNotFoundError("nope"))
            resp = client.post(f"/api/v1/snapshots/items/{uuid.uuid4()}/ignore")

        assert resp.status_code == 404

    def test_remove_requires_confirmation(self, client, mailbox):
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            resp = client.post(f"/api/v1/snapshots/items/{uuid.uuid4()}/remove", json={"confirm": False})

        assert resp.status_code == 400
        cls.assert_not_called()
        mailbox.remove_from_inbox.assert_not_awaited()

    def test_remove_confirmed(self, client, mailbox):
        item = _item()
        item.is_removed_from_inbox = True
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            cls.return_value.remove_item = AsyncMock(return_value=item)
            resp = client.post(f"/api/v1/snapshots/items/{item.id}/remove", json={"confirm": True})

        assert resp.status_code == 200
        assert resp.json()["is_removed_from_inbox"] is True
        cls.assert_called_once_with(mailbox)

    def test_remove_mailbox_failure_is_502(self, client):
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            cls.return_value.remove_item = AsyncMock(side_effect=MailboxError("gmail down"))
            resp = client.post(f"/api/v1/snapshots/items/{uuid.uuid4()}/remove", json={"confirm": True})

        assert resp.status_code == 502

    def test_open_returns_link(self, client):
        item = _item()
        with patch("inboxsnap.routers.snapshots.InteractionService") as cls:
            cls.return_value.open_item = AsyncMock(return_value=item)
            resp = client.post(f"/api/v1/snapshots/items/{item.id}/open")

        assert resp.status_code == 200
        assert resp.json()["open_url"].endswith("#inbox/msg_001")
