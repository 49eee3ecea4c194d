"""Snapshot routes: create, list, view, and item actions."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.dependencies import get_current_user, get_db, get_mailbox_client, get_snapshot_service
from inboxsnap.exceptions import (
    MailboxError,
    QuotaExceededError,
    SnapshotCreationError,
    SnapshotItemNotFoundError,
    SnapshotNotFoundError,
)
from inboxsnap.models.snapshot import Snapshot
from inboxsnap.models.user import User
from inboxsnap.schemas.snapshot import (
    CreatedSnapshotInfo,
    CreateSnapshotResponse,
    ItemActionResponse,
    PriorityCounts,
    RemoveItemRequest,
    SnapshotItemResponse,
    SnapshotListResponse,
    SnapshotResponse,
    SnapshotWithItemsResponse,
)
from inboxsnap.services.gmail_service import MailboxClient
from inboxsnap.services.interaction_service import InteractionService
from inboxsnap.services.snapshot_service import SnapshotService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/snapshots", tags=["snapshots"])


def _snapshot_fields(snapshot: Snapshot, counts: dict[str, int] | None) -> dict:
    extra = snapshot.extra_data or {}
    return {
        "id": snapshot.id,
        "snapshot_date": snapshot.snapshot_date,
        "total_items": snapshot.total_items,
        "retention_expires_at": snapshot.retention_expires_at,
        "created_at": snapshot.created_at,
        "scope_type": extra.get("scope_type"),
        "scope_value": extra.get("scope_value"),
        "priority_counts": PriorityCounts(**(counts or {})),
    }


@router.get("", response_model=SnapshotListResponse)
async def list_snapshots(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """List the user's unexpired snapshots, newest first."""
    snapshots = await service.list_snapshots(db, user.id)
    counts = await service.priority_counts(db, user.id)
    return SnapshotListResponse(
        snapshots=[SnapshotResponse(**_snapshot_fields(s, counts.get(s.id))) for s in snapshots],
        total=len(snapshots),
    )


@router.post("", response_model=CreateSnapshotResponse)
async def create_snapshot(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Summarize the user's new unread emails into a snapshot.

    "Nothing new to summarize" is a normal outcome reported with
    ``success=false``; quota refusals are 403.
    """
    try:
        result = await service.create_snapshot(db, user)
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail={"reason": e.reason.value, "message": e.message}) from e
    except SnapshotCreationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    snapshot = None
    if result.snapshot is not None:
        snapshot = CreatedSnapshotInfo(
            id=result.snapshot.id,
            total_items=result.snapshot.total_items,
            new_emails_processed=result.snapshot.new_emails_processed,
        )
    return CreateSnapshotResponse(success=result.success, message=result.message, snapshot=snapshot)


@router.get("/{snapshot_id}", response_model=SnapshotWithItemsResponse)
async def get_snapshot(
    snapshot_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """A snapshot with its items, each with its sender."""
    try:
        snapshot = await service.get_snapshot_with_items(db, user.id, snapshot_id)
    except SnapshotNotFoundError as e:
        raise HTTPException(status_code=404, detail="Snapshot not found") from e

    counts: dict[str, int] = {}
    for item in snapshot.items:
        counts[item.priority_label] = counts.get(item.priority_label, 0) + 1

    return SnapshotWithItemsResponse(
        **_snapshot_fields(snapshot, counts),
        items=[SnapshotItemResponse.model_validate(item) for item in snapshot.items],
    )


# --- Item actions ---


@router.post("/items/{item_id}/ignore", response_model=ItemActionResponse)
async def ignore_item(
    item_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Hide an item from the snapshot view. Does not touch the mailbox."""
    try:
        item = await InteractionService().ignore_item(db, user, item_id)
    except SnapshotItemNotFoundError as e:
        raise HTTPException(status_code=404, detail="Snapshot item not found") from e
    return ItemActionResponse.model_validate(item)


@router.post("/items/{item_id}/remove", response_model=ItemActionResponse)
async def remove_item(
    item_id: uuid.UUID,
    body: RemoveItemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    mailbox: MailboxClient = Depends(get_mailbox_client),
):
    """Archive the underlying message in the user's mailbox. Requires ``confirm``."""
    if not body.confirm:
        raise HTTPException(status_code=400, detail="Removing an email from the inbox requires confirmation")

    try:
        item = await InteractionService(mailbox).remove_item(db, user, item_id)
    except SnapshotItemNotFoundError as e:
        raise HTTPException(status_code=404, detail="Snapshot item not found") from e
    except MailboxError as e:
        logger.warning("Inbox removal failed for user=%s: %s", user.id, e)
        raise HTTPException(status_code=502, detail="Could not update the mailbox. Please try again.") from e
    return ItemActionResponse.model_validate(item)


@router.post("/items/{item_id}/open", response_model=ItemActionResponse)
async def open_item(
    item_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record an open and return the deep link to the message."""
    try:
        item = await InteractionService().open_item(db, user, item_id)
    except SnapshotItemNotFoundError as e:
        raise HTTPException(status_code=404, detail="Snapshot item not found") from e
    return ItemActionResponse.model_validate(item)
