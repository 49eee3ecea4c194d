"""Snapshot schemas."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class SenderResponse(BaseModel):
    id: uuid.UUID
    name: str
    email_address: str
    domain: str | None
    total_emails: int

    model_config = {"from_attributes": True}


class AttachmentMeta(BaseModel):
    filename: str
    mime_type: str
    size: int = 0


class SnapshotItemResponse(BaseModel):
    id: uuid.UUID
    snapshot_id: uuid.UUID
    provider: str
    message_id: str
    subject: str
    email_date: datetime
    summary: str
    snippet: str | None
    is_ignored_from_snapshots: bool
    is_removed_from_inbox: bool
    open_url: str | None
    attachments_meta: list[AttachmentMeta] | None = None
    priority_score: float = Field(..., ge=0.0, le=1.0)
    priority_label: str
    sender: SenderResponse

    model_config = {"from_attributes": True}


class PriorityCounts(BaseModel):
    urgent: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class SnapshotResponse(BaseModel):
    id: uuid.UUID
    snapshot_date: date
    total_items: int
    retention_expires_at: datetime
    created_at: datetime
    scope_type: str | None = None
    scope_value: int | None = None
    priority_counts: PriorityCounts = PriorityCounts()


class SnapshotWithItemsResponse(SnapshotResponse):
    items: list[SnapshotItemResponse]


class SnapshotListResponse(BaseModel):
    snapshots: list[SnapshotResponse]
    total: int


# --- Creation ---


class CreatedSnapshotInfo(BaseModel):
    id: uuid.UUID
    total_items: int
    new_emails_processed: int


class CreateSnapshotResponse(BaseModel):
    success: bool
    message: str
    snapshot: CreatedSnapshotInfo | None = None


# --- Item actions ---


class RemoveItemRequest(BaseModel):
    confirm: bool = False


class ItemActionResponse(BaseModel):
    id: uuid.UUID
    is_ignored_from_snapshots: bool
    is_removed_from_inbox: bool
    open_url: str | None = None

    model_config = {"from_attributes": True}
