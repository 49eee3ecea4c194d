"""Celery task for the snapshot retention sweep."""

import logging

from celery import shared_task
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from inboxsnap.config import get_settings
from inboxsnap.services.retention_service import sweep_expired_snapshots as run_sweep

logger = logging.getLogger(__name__)


def _get_sync_session():
    """Create a synchronous DB session for Celery tasks."""
    settings = get_settings()
    engine = create_engine(settings.sync_database_url, pool_pre_ping=True)
    return sessionmaker(bind=engine)()


@shared_task(name="inboxsnap.tasks.retention_tasks.sweep_expired_snapshots")
def sweep_expired_snapshots() -> dict:
    """Delete snapshots (and their items) whose retention window has passed.

    Never raises: a failed run is logged and the next scheduled run retries.
    """
    settings = get_settings()
    session = _get_sync_session()
    try:
        result = run_sweep(session, batch_size=settings.retention_sweep_batch_size)
        return {
            "snapshots_deleted": result.snapshots_deleted,
            "items_deleted": result.items_deleted,
            "failed_batches": result.failed_batches,
        }
    except Exception as e:
        session.rollback()
        logger.error("Retention sweep failed: %s", e)
        return {"snapshots_deleted": 0, "items_deleted": 0, "failed_batches": 0, "error": type(e).__name__}
    finally:
        session.close()
