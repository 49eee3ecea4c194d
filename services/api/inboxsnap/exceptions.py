"""Domain exceptions for snapshot generation and quota enforcement."""

import enum


class SnapshotError(Exception):
    """Base exception for all Inbox Snapshot errors."""


class QuotaDenialReason(str, enum.Enum):
    TRIAL_EXPIRED = "trial_expired"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    NO_ACTIVE_ACCESS = "no_active_access"
    DAILY_LIMIT_REACHED = "daily_limit_reached"


QUOTA_MESSAGES = {
    QuotaDenialReason.TRIAL_EXPIRED: "Trial period has expired. Please upgrade to continue.",
    QuotaDenialReason.SUBSCRIPTION_EXPIRED: "Subscription has expired. Please renew to continue.",
    QuotaDenialReason.NO_ACTIVE_ACCESS: "No active subscription found.",
    QuotaDenialReason.DAILY_LIMIT_REACHED: "Daily snapshot limit reached. Upgrade your plan for more snapshots.",
}


class QuotaExceededError(SnapshotError):
    """The user's plan does not allow the requested action right now."""

    def __init__(self, reason: QuotaDenialReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or QUOTA_MESSAGES[reason])

    @property
    def message(self) -> str:
        return str(self)


class UserNotFoundError(SnapshotError):
    """No user row for the given id."""


class SnapshotNotFoundError(SnapshotError):
    """Snapshot does not exist or belongs to another user."""


class SnapshotItemNotFoundError(SnapshotError):
    """Snapshot item does not exist or belongs to another user."""


class MailboxError(SnapshotError):
    """Mailbox provider transport or authorization failure."""


class SnapshotCreationError(SnapshotError):
    """Unexpected failure while building a snapshot."""
