"""Conversion routes: access checks and contextual upgrade prompts."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.dependencies import get_current_user, get_db, get_quota_service
from inboxsnap.models.user import SubscriptionTier, User
from inboxsnap.routers.subscription import plan_response
from inboxsnap.schemas.subscription import AccessCheckResponse, CurrentUsage, UpgradePromptResponse
from inboxsnap.services.quota_service import PAID_TIERS, PLAN_LIMITS, QuotaService

router = APIRouter(prefix="/conversion", tags=["conversion"])

UPGRADE_OPTIONS = [
    "POST /subscription/start-trial",
    "POST /subscription/upgrade/starter",
    "POST /subscription/upgrade/pro",
]

# Trial users at or past this many lifetime snapshots get the "trial ending" prompt
TRIAL_ENDING_AT = 8


@router.get("/check-access", response_model=AccessCheckResponse)
async def check_access(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    usage = await quota.check_usage_limits(db, user.id)
    tier = SubscriptionTier(user.subscription_tier)
    needs_upgrade = tier == SubscriptionTier.FREE or not usage.has_active_access

    return AccessCheckResponse(
        has_access=usage.has_active_access,
        needs_upgrade=needs_upgrade,
        current_tier=tier.value,
        available_options=UPGRADE_OPTIONS if needs_upgrade else [],
        message=(
            "You need to start a trial or subscribe to create snapshots" if needs_upgrade else "Access granted"
        ),
    )


@router.get("/upgrade-prompt", response_model=UpgradePromptResponse)
async def upgrade_prompt(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    quota: QuotaService = Depends(get_quota_service),
):
    """Upgrade prompt chosen from the user's tier and trial usage."""
    usage = await quota.check_usage_limits(db, user.id)
    tier = SubscriptionTier(user.subscription_tier)
    trial_cap = PLAN_LIMITS[SubscriptionTier.TRIAL].total_snapshots_allowed

    prompt_type, urgency, message = "general", "low", ""
    if tier == SubscriptionTier.FREE:
        prompt_type, urgency = "first_time", "high"
        message = "Create your first AI email snapshot! Start with a free trial or subscribe now."
    elif usage.is_trial_expired:
        prompt_type, urgency = "trial_expired", "high"
        message = "Your trial has expired. Subscribe to continue creating snapshots."
    elif tier == SubscriptionTier.TRIAL and usage.total_snapshots_used >= TRIAL_ENDING_AT:
        prompt_type, urgency = "trial_ending", "medium"
        message = (
            f"You've used {usage.total_snapshots_used}/{trial_cap} trial snapshots. "
            "Subscribe now to avoid interruption."
        )

    return UpgradePromptResponse(
        prompt_type=prompt_type,
        message=message,
        urgency=urgency,
        current_usage=CurrentUsage(
            tier=tier.value,
            snapshots_used=usage.total_snapshots_used or usage.snapshots_used_today,
            emails_summarized=usage.total_emails_summarized,
        ),
        available_plans=[plan_response(t, PLAN_LIMITS[t]) for t in PAID_TIERS],
    )
