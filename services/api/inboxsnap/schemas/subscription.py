"""Subscription and usage schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class UsageLimitsResponse(BaseModel):
    tier: str
    can_create_snapshot: bool
    can_process_emails: bool
    max_emails_allowed: int
    snapshots_used_today: int
    snapshots_remaining_today: int | None
    emails_summarized_today: int
    total_emails_summarized: int
    total_snapshots_used: int
    total_snapshots_allowed: int | None
    is_trial_expired: bool
    is_subscription_expired: bool
    has_active_access: bool
    denial_reason: str | None = None


class SubscriptionStatusResponse(BaseModel):
    tier: str
    billing_cycle: str | None
    trial_started_at: datetime | None
    trial_expires_at: datetime | None
    subscription_started_at: datetime | None
    subscription_expires_at: datetime | None
    usage: UsageLimitsResponse


class PlanResponse(BaseModel):
    tier: str
    name: str
    max_snapshots_per_day: int | None
    max_emails_per_snapshot: int
    total_snapshots_allowed: int | None = None


class UpgradeRequest(BaseModel):
    billing_cycle: str = Field(default="monthly", pattern="^(monthly|yearly)$")
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None


# --- Conversion ---


class AccessCheckResponse(BaseModel):
    has_access: bool
    needs_upgrade: bool
    current_tier: str
    available_options: list[str]
    message: str


class CurrentUsage(BaseModel):
    tier: str
    snapshots_used: int
    emails_summarized: int


class UpgradePromptResponse(BaseModel):
    prompt_type: str
    message: str
    urgency: str
    current_usage: CurrentUsage
    available_plans: list[PlanResponse]
