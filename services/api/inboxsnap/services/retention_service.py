"""Retention sweep: hard-delete snapshots whose retention window has passed.

Runs on a synchronous session (Celery worker). Items are deleted explicitly
before their snapshots so no item can outlive its parent, whether or not the
database cascade is in place. Each batch commits on its own; a failing batch
is rolled back, logged and excluded from the rest of the run.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from inboxsnap.metrics import snapshot_items_swept_total, snapshots_swept_total
from inboxsnap.models.snapshot import Snapshot, SnapshotItem

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    snapshots_deleted: int = 0
    items_deleted: int = 0
    failed_batches: int = 0
    failed_snapshot_ids: list[uuid.UUID] = field(default_factory=list)


def select_expired_ids(now: datetime, batch_size: int, exclude: list[uuid.UUID] | None = None):
    """Ids of snapshots with ``retention_expires_at <= now``, oldest first."""
    stmt = select(Snapshot.id).where(Snapshot.retention_expires_at <= now)
    if exclude:
        stmt = stmt.where(Snapshot.id.notin_(exclude))
    return stmt.order_by(Snapshot.retention_expires_at).limit(batch_size)


def _delete_batch(session: Session, snapshot_ids: list[uuid.UUID]) -> tuple[int, int]:
    items = session.execute(delete(SnapshotItem).where(SnapshotItem.snapshot_id.in_(snapshot_ids)))
    snapshots = session.execute(delete(Snapshot).where(Snapshot.id.in_(snapshot_ids)))
    session.commit()
    return snapshots.rowcount, items.rowcount


def sweep_expired_snapshots(session: Session, now: datetime | None = None, batch_size: int = 500) -> SweepResult:
    """Delete every expired snapshot and its items, in batches.

    Running it again with nothing newly expired deletes nothing.
    """
    now = now or datetime.now(timezone.utc)
    result = SweepResult()

    while True:
        snapshot_ids = list(
            session.execute(select_expired_ids(now, batch_size, result.failed_snapshot_ids)).scalars().all()
        )
        if not snapshot_ids:
            break

        try:
            snapshots, items = _delete_batch(session, snapshot_ids)
        except Exception as e:
            session.rollback()
            result.failed_batches += 1
            result.failed_snapshot_ids.extend(snapshot_ids)
            logger.error("Retention sweep batch of %d snapshots failed: %s", len(snapshot_ids), e)
            continue

        result.snapshots_deleted += snapshots
        result.items_deleted += items
        snapshots_swept_total.inc(snapshots)
        snapshot_items_swept_total.inc(items)

        if len(snapshot_ids) < batch_size:
            break

    logger.info(
        "Retention sweep (now=%s): %d snapshots and %d items deleted, %d failed batches",
        now.isoformat(),
        result.snapshots_deleted,
        result.items_deleted,
        result.failed_batches,
    )
    return result
