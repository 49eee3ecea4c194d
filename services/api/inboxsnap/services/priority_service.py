"""Deterministic priority scoring for snapshot items.

Uses mailbox metadata only (labels, priority headers, sender domain, size);
no AI calls and no message content. Each rule clamps with ``max``/``min`` in
a fixed order, so a later rule can tighten the score but an earlier rule can
never silently override it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from inboxsnap.models.snapshot import PriorityLabel

BASE_SCORE = 0.5
IMPORTANT_THRESHOLD = 0.6
LARGE_EMAIL_BYTES = 50_000

X_PRIORITY_HIGH = re.compile(r"^[1-2]")

TRUSTED_DOMAINS = frozenset(
    {
        # Major email providers
        "gmail.com", "outlook.com", "hotmail.com", "yahoo.com", "icloud.com", "protonmail.com",
        # Tech companies
        "google.com", "microsoft.com", "apple.com", "meta.com", "facebook.com", "instagram.com",
        "twitter.com", "x.com", "tiktok.com", "snapchat.com",
        # Developer / work platforms
        "github.com", "gitlab.com", "stackoverflow.com", "atlassian.com", "slack.com", "discord.com",
        "zoom.us", "notion.so", "figma.com",
        # Professional networks
        "linkedin.com", "glassdoor.com", "indeed.com",
        # E-commerce & finance
        "amazon.com", "ebay.com", "etsy.com", "shopify.com", "paypal.com", "stripe.com", "square.com",
        "venmo.com", "cashapp.com",
        # News & media
        "substack.com", "medium.com", "youtube.com", "netflix.com", "spotify.com",
        # Banking
        "chase.com", "bankofamerica.com", "wellsfargo.com", "citi.com", "americanexpress.com",
        # Airlines & travel
        "delta.com", "united.com", "american.com", "southwest.com", "expedia.com", "booking.com",
        "airbnb.com",
        # Government & logistics
        "irs.gov", "usps.com", "fedex.com", "ups.com", "dhl.com",
        # Cloud & services
        "aws.amazon.com", "azure.microsoft.com", "digitalocean.com", "heroku.com", "vercel.com",
        "netlify.com",
    }
)


@dataclass(frozen=True)
class HeaderHints:
    """Priority-related header values, as sent (case preserved)."""

    importance: str | None = None
    priority: str | None = None
    x_priority: str | None = None


@dataclass(frozen=True)
class PriorityResult:
    score: float
    label: PriorityLabel
    factors: list[str] = field(default_factory=list)

    @property
    def is_important(self) -> bool:
        return self.score >= IMPORTANT_THRESHOLD


def priority_label(score: float) -> PriorityLabel:
    """Map a score to its label. The only place the thresholds live."""
    if score >= 0.85:
        return PriorityLabel.URGENT
    if score >= 0.70:
        return PriorityLabel.HIGH
    if score >= 0.40:
        return PriorityLabel.MEDIUM
    return PriorityLabel.LOW


def sender_domain(email: str) -> str:
    """Lower-cased domain part, or "" for a value with no "@"."""
    _, at, domain = (email or "").rpartition("@")
    if not at:
        return ""
    return domain.strip().lower()


def is_trusted_domain(email: str) -> bool:
    domain = sender_domain(email)
    return bool(domain) and domain in TRUSTED_DOMAINS


def compute_priority(
    labels: Iterable[str],
    headers: HeaderHints | None = None,
    sender_email: str = "",
    size_estimate: int = 0,
) -> PriorityResult:
    """Score a message in [0, 1] and label it.

    Args:
        labels: Mailbox label ids (e.g. ``IMPORTANT``, ``CATEGORY_PROMOTIONS``).
        headers: Importance / Priority / X-Priority header values.
        sender_email: Sender address; only its domain is used.
        size_estimate: Provider size estimate in bytes.

    Returns:
        PriorityResult with the rounded score, its label and the names of the
        rules that fired, in rule order.
    """
    label_set = {lbl.strip().upper() for lbl in labels if lbl and lbl.strip()}
    headers = headers or HeaderHints()
    score = BASE_SCORE
    factors: list[str] = []

    # --- Label signals ---
    if "IMPORTANT" in label_set:
        score = max(score, 1.0)
        factors.append("marked-important")

    if "STARRED" in label_set:
        score = max(score, 0.85)
        factors.append("starred")

    # Category labels are mutually exclusive; first match wins
    if "CATEGORY_PROMOTIONS" in label_set:
        score = min(score, 0.3)
        factors.append("promotional")
    elif "CATEGORY_UPDATES" in label_set:
        score = min(score, 0.4)
        factors.append("updates")
    elif "CATEGORY_PERSONAL" in label_set:
        score = max(score, 0.7)
        factors.append("personal")

    # --- Header signals ---
    importance = (headers.importance or "").strip().lower()
    priority = (headers.priority or "").strip().lower()
    if importance == "high" or priority == "urgent":
        score = max(score, 0.8)
        factors.append("high-priority-header")

    if headers.x_priority and X_PRIORITY_HIGH.match(headers.x_priority.strip()):
        score = max(score, 0.9)
        factors.append("x-priority-high")

    # --- Sender signal ---
    if is_trusted_domain(sender_email):
        score = min(score + 0.1, 1.0)
        factors.append("trusted-domain")

    # --- Size signal ---
    if (size_estimate or 0) > LARGE_EMAIL_BYTES:
        score = min(score + 0.05, 1.0)
        factors.append("large-email")

    score = round(score, 2)
    return PriorityResult(score=score, label=priority_label(score), factors=factors)
