"""Seed script: populates dev DB with a trial user and one sample snapshot."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from inboxsnap.config import get_settings
from inboxsnap.models.sender import Sender
from inboxsnap.models.snapshot import Snapshot, SnapshotItem
from inboxsnap.models.user import SubscriptionTier, User
from inboxsnap.services.priority_service import HeaderHints, compute_priority

SEED_USER_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
SEED_GOOGLE_ID = "seed_google_id_12345"
SEED_EMAIL = "dev@example.com"

SAMPLE_MESSAGES = [
    # (sender name, sender email, subject, labels, headers, summary)
    (
        "Ops Team",
        "ops@github.com",
        "Production deploy failed",
        ["INBOX", "UNREAD", "IMPORTANT"],
        HeaderHints(),
        "* Deploy of api v2.3 failed on migration step\n* Rollback completed automatically",
    ),
    (
        "Alice Chen",
        "alice@example.org",
        "Lunch on Friday?",
        ["INBOX", "UNREAD", "CATEGORY_PERSONAL"],
        HeaderHints(),
        "* Asks whether Friday lunch still works\n* Suggests the usual place at noon",
    ),
    (
        "Deals",
        "offers@shop.example.com",
        "48 hour flash sale",
        ["INBOX", "UNREAD", "CATEGORY_PROMOTIONS"],
        HeaderHints(),
        "* Site-wide discount for 48 hours",
    ),
]


async def seed():
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as db:
        result = await db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": SEED_EMAIL})
        if result.scalar():
            print(f"Seed user {SEED_EMAIL} already exists, skipping.")
            await engine.dispose()
            return

        now = datetime.now(timezone.utc)

        user = User(
            id=SEED_USER_ID,
            google_id=SEED_GOOGLE_ID,
            email=SEED_EMAIL,
            name="Dev User",
            subscription_tier=SubscriptionTier.TRIAL,
            trial_started_at=now,
            trial_expires_at=now + timedelta(days=settings.trial_days),
            snapshots_created_today=1,
            total_snapshots_created=1,
            emails_summarized_today=len(SAMPLE_MESSAGES),
            total_emails_summarized=len(SAMPLE_MESSAGES),
            last_snapshot_date=now,
            last_usage_reset_date=now.date(),
        )
        db.add(user)
        await db.flush()

        snapshot = Snapshot(
            user_id=SEED_USER_ID,
            snapshot_date=now.date(),
            total_items=len(SAMPLE_MESSAGES),
            retention_expires_at=now + timedelta(hours=settings.snapshot_retention_hours),
            extra_data={"scope_type": "recent", "scope_value": 20, "email_provider": "gmail"},
        )
        db.add(snapshot)
        await db.flush()

        for i, (name, email, subject, labels, headers, summary) in enumerate(SAMPLE_MESSAGES):
            sender = Sender(
                user_id=SEED_USER_ID,
                name=name,
                email_address=email,
                domain=email.split("@")[1],
                total_emails=1,
            )
            db.add(sender)
            await db.flush()

            message_id = f"seed_msg_{i:03d}"
            priority = compute_priority(labels, headers, email)
            db.add(
                SnapshotItem(
                    snapshot_id=snapshot.id,
                    sender_id=sender.id,
                    message_id=message_id,
                    subject=subject,
                    email_date=now - timedelta(hours=i + 1),
                    summary=summary,
                    open_url=f"https://mail.google.com/mail/u/0/#inbox/{message_id}",
                    priority_score=priority.score,
                    priority_label=priority.label.value,
                )
            )

        await db.commit()
        print(f"Seeded user {SEED_EMAIL} with 1 snapshot of {len(SAMPLE_MESSAGES)} items.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
