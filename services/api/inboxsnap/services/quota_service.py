"""Usage-quota state machine.

Owns every write to the subscription and counter columns of ``User``. Each
transition locks the user row (``SELECT ... FOR UPDATE``) and performs its
read-modify-write inside that lock, so two concurrent snapshot attempts for
one user cannot both get past a cap.

Transitions:
    daily reset       counters zeroed when the usage day changes
    start_trial       free -> trial (7 days, counters zeroed)
    upgrade           any -> starter | pro (1 month or 1 year)
    reinitialize      any -> fresh free state (account deactivation)
    consumption       record_snapshot_created / record_emails_processed
"""

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.config import Settings
from inboxsnap.exceptions import QuotaDenialReason, QuotaExceededError, UserNotFoundError
from inboxsnap.metrics import quota_rejections_total
from inboxsnap.models.user import BillingCycle, SubscriptionTier, User
from inboxsnap.services.audit_service import write_audit_log

logger = logging.getLogger(__name__)

PAID_TIERS = (SubscriptionTier.STARTER, SubscriptionTier.PRO)


@dataclass(frozen=True)
class PlanLimits:
    name: str
    max_snapshots_per_day: int | None  # None = unlimited
    max_emails_per_snapshot: int
    total_snapshots_allowed: int | None = None  # lifetime cap, trial only


PLAN_LIMITS: dict[SubscriptionTier, PlanLimits] = {
    SubscriptionTier.FREE: PlanLimits("Free", max_snapshots_per_day=0, max_emails_per_snapshot=0),
    SubscriptionTier.TRIAL: PlanLimits(
        "Free Trial", max_snapshots_per_day=3, max_emails_per_snapshot=20, total_snapshots_allowed=10
    ),
    SubscriptionTier.STARTER: PlanLimits("Starter", max_snapshots_per_day=5, max_emails_per_snapshot=30),
    SubscriptionTier.PRO: PlanLimits("Pro", max_snapshots_per_day=None, max_emails_per_snapshot=50),
}


def get_plan_limits(tier: SubscriptionTier) -> PlanLimits:
    return PLAN_LIMITS[SubscriptionTier(tier)]


@dataclass(frozen=True)
class UsageLimits:
    """Read-only projection of a user's access and quota at one instant."""

    tier: SubscriptionTier
    can_create_snapshot: bool
    can_process_emails: bool
    max_emails_allowed: int
    snapshots_used_today: int
    snapshots_remaining_today: int | None  # None = unlimited
    emails_summarized_today: int
    total_emails_summarized: int
    total_snapshots_used: int
    total_snapshots_allowed: int | None
    is_trial_expired: bool
    is_subscription_expired: bool
    has_active_access: bool

    def denial_reason(self) -> QuotaDenialReason | None:
        """Why a snapshot would be refused, checked in user-facing priority order."""
        if self.can_create_snapshot:
            return None
        if self.is_trial_expired:
            return QuotaDenialReason.TRIAL_EXPIRED
        if self.is_subscription_expired:
            return QuotaDenialReason.SUBSCRIPTION_EXPIRED
        if not self.has_active_access:
            return QuotaDenialReason.NO_ACTIVE_ACCESS
        return QuotaDenialReason.DAILY_LIMIT_REACHED

    def denial_message(self) -> str | None:
        reason = self.denial_reason()
        if reason is not QuotaDenialReason.DAILY_LIMIT_REACHED:
            return None
        if (
            self.total_snapshots_allowed is not None
            and self.total_snapshots_used >= self.total_snapshots_allowed
        ):
            return (
                f"Trial snapshot limit reached ({self.total_snapshots_used}/{self.total_snapshots_allowed}). "
                "Upgrade your plan for more snapshots."
            )
        cap = self.snapshots_used_today + (self.snapshots_remaining_today or 0)
        return (
            f"Daily snapshot limit reached ({self.snapshots_used_today}/{cap}). "
            "Upgrade your plan for more snapshots."
        )

    def to_dict(self) -> dict:
        return asdict(self)


def usage_day(now: datetime, tz_name: str = "UTC") -> date:
    """Calendar day of ``now`` in the reference timezone."""
    return now.astimezone(ZoneInfo(tz_name)).date()


def reset_daily_usage_if_needed(user: User, today: date) -> bool:
    """Zero the daily counters if the usage day has rolled over.

    Returns True when a reset happened; a second call on the same day is a
    no-op.
    """
    if user.last_usage_reset_date == today:
        return False
    user.snapshots_created_today = 0
    user.emails_summarized_today = 0
    user.last_usage_reset_date = today
    return True


def evaluate_usage(user: User, now: datetime) -> UsageLimits:
    """Access and quota evaluation. Pure given the user's state and ``now``.

    Call ``reset_daily_usage_if_needed`` first; daily counters are only
    meaningful for the current usage day.
    """
    tier = SubscriptionTier(user.subscription_tier)
    limits = get_plan_limits(tier)

    is_trial_expired = (
        tier == SubscriptionTier.TRIAL and user.trial_expires_at is not None and now >= user.trial_expires_at
    )
    is_subscription_expired = (
        tier != SubscriptionTier.TRIAL
        and user.subscription_expires_at is not None
        and now >= user.subscription_expires_at
    )
    has_active_access = (tier == SubscriptionTier.TRIAL and not is_trial_expired) or (
        tier not in (SubscriptionTier.TRIAL, SubscriptionTier.FREE) and not is_subscription_expired
    )

    used_today = user.snapshots_created_today or 0
    total_used = user.total_snapshots_created or 0

    can_create = has_active_access
    if tier == SubscriptionTier.TRIAL and limits.total_snapshots_allowed is not None:
        can_create = can_create and total_used < limits.total_snapshots_allowed
    if limits.max_snapshots_per_day is not None:
        can_create = can_create and used_today < limits.max_snapshots_per_day

    remaining = None
    if limits.max_snapshots_per_day is not None:
        remaining = max(0, limits.max_snapshots_per_day - used_today)

    return UsageLimits(
        tier=tier,
        can_create_snapshot=can_create,
        can_process_emails=has_active_access,
        max_emails_allowed=limits.max_emails_per_snapshot,
        snapshots_used_today=used_today,
        snapshots_remaining_today=remaining,
        emails_summarized_today=user.emails_summarized_today or 0,
        total_emails_summarized=user.total_emails_summarized or 0,
        total_snapshots_used=total_used,
        total_snapshots_allowed=limits.total_snapshots_allowed,
        is_trial_expired=is_trial_expired,
        is_subscription_expired=is_subscription_expired,
        has_active_access=has_active_access,
    )


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar-month addition, clamping to the last day of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class QuotaService:
    """Atomic transitions over the per-user quota state."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _now(self, now: datetime | None) -> datetime:
        return now or datetime.now(timezone.utc)

    def _today(self, now: datetime) -> date:
        return usage_day(now, self._settings.usage_timezone)

    async def _lock_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        result = await db.execute(
            select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def _locked_usage(self, db: AsyncSession, user_id: uuid.UUID, now: datetime) -> tuple[User, UsageLimits]:
        user = await self._lock_user(db, user_id)
        if reset_daily_usage_if_needed(user, self._today(now)):
            logger.info("Daily usage reset for user=%s", user_id)
            await db.flush()
        return user, evaluate_usage(user, now)

    async def check_usage_limits(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        now: datetime | None = None,
    ) -> UsageLimits:
        """Usage projection for a user, after applying the daily reset."""
        _, usage = await self._locked_usage(db, user_id, self._now(now))
        return usage

    async def record_snapshot_created(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        now: datetime | None = None,
    ) -> UsageLimits:
        """Reserve one snapshot slot or raise ``QuotaExceededError``.

        Returns the usage projection after the slot was taken.
        """
        now = self._now(now)
        user, usage = await self._locked_usage(db, user_id, now)

        reason = usage.denial_reason()
        if reason is not None:
            quota_rejections_total.labels(reason=reason.value).inc()
            logger.info("Snapshot refused for user=%s: %s", user_id, reason.value)
            raise QuotaExceededError(reason, usage.denial_message())

        user.snapshots_created_today = usage.snapshots_used_today + 1
        user.total_snapshots_created = usage.total_snapshots_used + 1
        user.last_snapshot_date = now
        await db.flush()
        return evaluate_usage(user, now)

    async def record_emails_processed(self, db: AsyncSession, user_id: uuid.UUID, count: int) -> None:
        """Add ``count`` to both email counters. Call only after items were persisted."""
        if count < 0:
            raise ValueError("count must be non-negative")
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                emails_summarized_today=User.emails_summarized_today + count,
                total_emails_summarized=User.total_emails_summarized + count,
            )
        )

    async def start_trial(self, db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None) -> User:
        """Move a user onto the trial tier. Callers guard against restarting a trial."""
        now = self._now(now)
        user = await self._lock_user(db, user_id)

        user.subscription_tier = SubscriptionTier.TRIAL
        user.trial_started_at = now
        user.trial_expires_at = now + timedelta(days=self._settings.trial_days)
        user.snapshots_created_today = 0
        user.emails_summarized_today = 0
        user.total_snapshots_created = 0
        user.total_emails_summarized = 0
        user.last_usage_reset_date = self._today(now)
        await db.flush()

        await write_audit_log(
            db,
            user_id=user.id,
            action="subscription.trial_started",
            entity_type="user",
            entity_id=str(user.id),
            metadata={"expires_at": user.trial_expires_at.isoformat()},
        )
        logger.info("Started trial for user=%s", user.id)
        return user

    async def upgrade(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
        now: datetime | None = None,
    ) -> User:
        tier = SubscriptionTier(tier)
        if tier not in PAID_TIERS:
            raise ValueError(f"Cannot upgrade to tier {tier.value!r}")
        billing_cycle = BillingCycle(billing_cycle)
        now = self._now(now)
        user = await self._lock_user(db, user_id)

        user.subscription_tier = tier
        user.billing_cycle = billing_cycle
        user.subscription_started_at = now
        user.subscription_expires_at = add_months(now, 12 if billing_cycle == BillingCycle.YEARLY else 1)
        if stripe_customer_id:
            user.stripe_customer_id = stripe_customer_id
        if stripe_subscription_id:
            user.stripe_subscription_id = stripe_subscription_id
        await db.flush()

        await write_audit_log(
            db,
            user_id=user.id,
            action="subscription.upgraded",
            entity_type="user",
            entity_id=str(user.id),
            metadata={"tier": tier.value, "billing_cycle": billing_cycle.value},
        )
        logger.info("Upgraded user=%s to %s (%s)", user.id, tier.value, billing_cycle.value)
        return user

    async def reinitialize(self, db: AsyncSession, user_id: uuid.UUID, *, deactivate: bool = True) -> User:
        """Reset a user to a fresh free state, keeping the row for billing continuity."""
        user = await self._lock_user(db, user_id)

        user.is_active = not deactivate
        user.subscription_tier = SubscriptionTier.FREE
        user.billing_cycle = None
        user.trial_started_at = None
        user.trial_expires_at = None
        user.subscription_started_at = None
        user.subscription_expires_at = None
        user.stripe_customer_id = None
        user.stripe_subscription_id = None
        user.snapshots_created_today = 0
        user.emails_summarized_today = 0
        user.total_snapshots_created = 0
        user.total_emails_summarized = 0
        user.last_snapshot_date = None
        user.last_usage_reset_date = None
        await db.flush()

        await write_audit_log(
            db,
            user_id=user.id,
            action="subscription.reinitialized",
            entity_type="user",
            entity_id=str(user.id),
            metadata={"deactivated": deactivate},
        )
        logger.info("Reinitialized user=%s (deactivated=%s)", user.id, deactivate)
        return user
