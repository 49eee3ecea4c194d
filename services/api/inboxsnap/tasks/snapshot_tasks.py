"""Celery task for the daily scheduled snapshot run."""

import asyncio
import logging
import uuid

from celery import shared_task
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from inboxsnap.config import Settings, get_settings
from inboxsnap.exceptions import QuotaExceededError, SnapshotError
from inboxsnap.models.oauth_token import OAuthToken
from inboxsnap.models.user import SubscriptionTier, User
from inboxsnap.services.ai_service import get_summarizer
from inboxsnap.services.crypto_service import get_crypto_service
from inboxsnap.services.gmail_service import get_mailbox
from inboxsnap.services.quota_service import QuotaService
from inboxsnap.services.sender_registry import SenderRegistry
from inboxsnap.services.snapshot_service import SnapshotService

logger = logging.getLogger(__name__)


def _get_async_session(settings: Settings):
    engine = create_async_engine(settings.database_url, echo=False)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


def _eligible_users_query():
    """Active, non-free users with stored Gmail tokens."""
    return (
        select(User.id)
        .join(OAuthToken, OAuthToken.user_id == User.id)
        .where(User.is_active.is_(True), User.subscription_tier != SubscriptionTier.FREE)
        .order_by(User.id)
    )


async def _generate_for_user(session_factory, settings: Settings, user_id: uuid.UUID) -> str:
    """Run one snapshot cycle in its own session. Returns an outcome tag."""
    async with session_factory() as db:
        user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        if user is None:
            return "missing"

        service = SnapshotService(
            settings,
            QuotaService(settings),
            SenderRegistry(),
            get_mailbox(settings, get_crypto_service(settings), db),
            get_summarizer(settings),
        )
        try:
            result = await service.create_snapshot(db, user)
        except QuotaExceededError as e:
            logger.info("Scheduled snapshot skipped for user=%s: %s", user_id, e.reason.value)
            return "quota"
        except SnapshotError as e:
            logger.warning("Scheduled snapshot failed for user=%s: %s", user_id, type(e).__name__)
            return "failed"

        if not result.success:
            logger.info("No scheduled snapshot for user=%s: %s", user_id, result.message)
            return "empty"
        return "created"


async def _generate_all(settings: Settings) -> dict[str, int]:
    engine, session_factory = _get_async_session(settings)
    outcomes: dict[str, int] = {"created": 0, "empty": 0, "quota": 0, "failed": 0, "missing": 0}
    try:
        async with session_factory() as db:
            user_ids = list((await db.execute(_eligible_users_query())).scalars().all())

        for user_id in user_ids:
            try:
                outcome = await _generate_for_user(session_factory, settings, user_id)
            except Exception as e:
                logger.error("Scheduled snapshot crashed for user=%s: %s", user_id, type(e).__name__)
                outcome = "failed"
            outcomes[outcome] += 1
    finally:
        await engine.dispose()

    logger.info("Scheduled snapshots: %s", outcomes)
    return outcomes


@shared_task(name="inboxsnap.tasks.snapshot_tasks.generate_scheduled_snapshots")
def generate_scheduled_snapshots() -> dict:
    """Daily run of the snapshot generator for every eligible user."""
    return asyncio.run(_generate_all(get_settings()))
