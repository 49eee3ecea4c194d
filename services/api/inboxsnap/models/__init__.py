"""Inbox Snapshot database models."""

from inboxsnap.models.audit_log import AuditLog
from inboxsnap.models.oauth_token import OAuthToken
from inboxsnap.models.sender import Sender
from inboxsnap.models.snapshot import PriorityLabel, Snapshot, SnapshotItem
from inboxsnap.models.user import BillingCycle, SubscriptionTier, User
from inboxsnap.models.user_interaction import InteractionType, UserInteraction

__all__ = [
    "User",
    "SubscriptionTier",
    "BillingCycle",
    "OAuthToken",
    "Sender",
    "Snapshot",
    "SnapshotItem",
    "PriorityLabel",
    "UserInteraction",
    "InteractionType",
    "AuditLog",
]
