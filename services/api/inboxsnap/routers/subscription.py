"""Subscription routes: plan status, usage limits, trial and upgrades."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.dependencies import get_current_user, get_db, get_quota_service
from inboxsnap.models.user import BillingCycle, SubscriptionTier, User
from inboxsnap.schemas.subscription import (
    PlanResponse,
    SubscriptionStatusResponse,
    UpgradeRequest,
    UsageLimitsResponse,
)
from inboxsnap.services.quota_service import PAID_TIERS, PLAN_LIMITS, PlanLimits, QuotaService, UsageLimits

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscription", tags=["subscription"])


def _usage_response(usage: UsageLimits) -> UsageLimitsResponse:
    reason = usage.denial_reason()
    return UsageLimitsResponse(
        **{**usage.to_dict(), "tier": usage.tier.value},
        denial_reason=reason.value if reason else None,
    )


def _status_response(user: User, usage: UsageLimits) -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse(
        tier=SubscriptionTier(user.subscription_tier).value,
        billing_cycle=BillingCycle(user.billing_cycle).value if user.billing_cycle else None,
        trial_started_at=user.trial_started_at,
        trial_expires_at=user.trial_expires_at,
        subscription_started_at=user.subscription_started_at,
        subscription_expires_at=user.subscription_expires_at,
        usage=_usage_response(usage),
    )


def plan_response(tier: SubscriptionTier, plan: PlanLimits) -> PlanResponse:
    return PlanResponse(
        tier=tier.value,
        name=plan.name,
        max_snapshots_per_day=plan.max_snapshots_per_day,
        max_emails_per_snapshot=plan.max_emails_per_snapshot,
        total_snapshots_allowed=plan.total_snapshots_allowed,
    )


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans():
    return [plan_response(tier, plan) for tier, plan in PLAN_LIMITS.items()]


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    usage = await quota.check_usage_limits(db, user.id)
    return _status_response(user, usage)


@router.get("/limits", response_model=UsageLimitsResponse)
async def usage_limits(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    """What the user may do right now, after the daily reset."""
    usage = await quota.check_usage_limits(db, user.id)
    return _usage_response(usage)


@router.post("/start-trial", response_model=SubscriptionStatusResponse)
async def start_trial(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    """Start the free trial. Only free users who never had a trial are eligible."""
    if SubscriptionTier(user.subscription_tier) != SubscriptionTier.FREE or user.trial_started_at is not None:
        raise HTTPException(status_code=400, detail="Trial is not available for this account")

    user = await quota.start_trial(db, user.id)
    usage = await quota.check_usage_limits(db, user.id)
    return _status_response(user, usage)


@router.post("/upgrade/{tier}", response_model=SubscriptionStatusResponse)
async def upgrade(
    tier: str,
    body: UpgradeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    try:
        target = SubscriptionTier(tier)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid subscription tier")
    if target not in PAID_TIERS:
        raise HTTPException(status_code=400, detail="Only starter and pro can be purchased")

    user = await quota.upgrade(
        db,
        user.id,
        target,
        billing_cycle=BillingCycle(body.billing_cycle),
        stripe_customer_id=body.stripe_customer_id,
        stripe_subscription_id=body.stripe_subscription_id,
    )
    usage = await quota.check_usage_limits(db, user.id)
    return _status_response(user, usage)
