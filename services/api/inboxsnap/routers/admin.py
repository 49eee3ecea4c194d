"""Account routes: deactivation and full data erasure."""

import logging
import uuid

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.config import Settings, get_settings
from inboxsnap.dependencies import get_current_user_id, get_db, get_quota_service
from inboxsnap.exceptions import UserNotFoundError
from inboxsnap.models.audit_log import AuditLog
from inboxsnap.models.oauth_token import OAuthToken
from inboxsnap.models.sender import Sender
from inboxsnap.models.snapshot import Snapshot, SnapshotItem
from inboxsnap.models.user import User
from inboxsnap.models.user_interaction import UserInteraction
from inboxsnap.services.audit_service import write_audit_log
from inboxsnap.services.crypto_service import get_crypto_service
from inboxsnap.services.quota_service import QuotaService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["admin"])

GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"


async def _revoke_google_token(db: AsyncSession, settings: Settings, user_id: uuid.UUID) -> None:
    """Best-effort revocation; a failure never blocks data erasure."""
    result = await db.execute(select(OAuthToken).where(OAuthToken.user_id == user_id))
    oauth_token = result.scalar_one_or_none()
    if oauth_token is None:
        return

    try:
        crypto = get_crypto_service(settings)
        access_token = crypto.decrypt(oauth_token.encrypted_access_token)
        async with httpx.AsyncClient(timeout=10.0) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": access_token})
        logger.info("Google tokens revoked for user=%s", user_id)
    except Exception as e:
        logger.warning("Failed to revoke Google tokens for user=%s: %s", user_id, type(e).__name__)


async def _erase_user_content(db: AsyncSession, user_id: uuid.UUID) -> None:
    snapshot_ids = select(Snapshot.id).where(Snapshot.user_id == user_id)
    await db.execute(delete(SnapshotItem).where(SnapshotItem.snapshot_id.in_(snapshot_ids)))
    await db.execute(delete(Snapshot).where(Snapshot.user_id == user_id))
    await db.execute(delete(Sender).where(Sender.user_id == user_id))
    await db.execute(delete(UserInteraction).where(UserInteraction.user_id == user_id))
    await db.execute(delete(OAuthToken).where(OAuthToken.user_id == user_id))


@router.delete("/me", status_code=200)
async def delete_account(
    hard: bool = Query(False, description="Also remove the user row and audit history"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    quota: QuotaService = Depends(get_quota_service),
):
    """Deactivate the account and erase all mailbox-derived data.

    By default the user row is kept and reset to a fresh free state so
    billing history stays continuous; ``hard=true`` removes it as well.
    """
    await write_audit_log(
        db=db,
        user_id=user_id,
        action="user.data_deletion_requested",
        entity_type="user",
        entity_id=str(user_id),
        metadata={"hard": hard},
    )

    await _revoke_google_token(db, settings, user_id)
    await _erase_user_content(db, user_id)

    if hard:
        await db.execute(delete(AuditLog).where(AuditLog.user_id == user_id))
        await db.execute(delete(User).where(User.id == user_id))
        logger.info("All data deleted for user=%s", user_id)
        return {"status": "ok", "detail": "Account and all data deleted"}

    try:
        await quota.reinitialize(db, user_id, deactivate=True)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e
    logger.info("Account deactivated for user=%s", user_id)
    return {"status": "ok", "detail": "Account deactivated and data deleted"}
