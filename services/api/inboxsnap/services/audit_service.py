"""Audit logging for subscription transitions and item actions."""

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.models.audit_log import AuditLog


async def write_audit_log(
    db: AsyncSession,
    user_id: uuid.UUID,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an audit entry to the session and flush it."""
    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        extra_data=metadata,
    )
    db.add(log_entry)
    await db.flush()
    return log_entry
