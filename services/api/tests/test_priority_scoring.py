"""Tests for deterministic priority scoring."""

import pytest

from inboxsnap.models.snapshot import PriorityLabel
from inboxsnap.services.priority_service import (
    HeaderHints,
    compute_priority,
    is_trusted_domain,
    priority_label,
    sender_domain,
)

PLAIN_SENDER = "someone@small-company.example"


class TestBaselineScoring:
    def test_baseline_score(self):
        result = compute_priority(["INBOX"], sender_email=PLAIN_SENDER)
        assert result.score == 0.5
        assert result.label == PriorityLabel.MEDIUM
        assert result.factors == []

    def test_no_labels_no_headers(self):
        result = compute_priority([])
        assert result.score == 0.5

    def test_score_bounds_clamped_high(self):
        result = compute_priority(
            ["IMPORTANT", "STARRED", "CATEGORY_PERSONAL"],
            HeaderHints(importance="high", priority="urgent", x_priority="1"),
            sender_email="ceo@github.com",
            size_estimate=200_000,
        )
        assert result.score == 1.0
        assert result.label == PriorityLabel.URGENT

    def test_score_bounds_clamped_low(self):
        result = compute_priority(["CATEGORY_PROMOTIONS"], sender_email=PLAIN_SENDER)
        assert 0.0 <= result.score <= 1.0
        assert result.score == 0.3
        assert result.label == PriorityLabel.LOW


class TestLabelSignals:
    def test_important_label(self):
        result = compute_priority(["INBOX", "IMPORTANT"], sender_email=PLAIN_SENDER)
        assert result.score == 1.0
        assert "marked-important" in result.factors

    def test_starred_label(self):
        result = compute_priority(["STARRED"], sender_email=PLAIN_SENDER)
        assert result.score == 0.85
        assert result.label == PriorityLabel.URGENT
        assert result.factors == ["starred"]

    def test_labels_are_case_insensitive(self):
        assert compute_priority(["starred"]).score == compute_priority(["STARRED"]).score

    def test_updates_category(self):
        result = compute_priority(["CATEGORY_UPDATES"], sender_email=PLAIN_SENDER)
        assert result.score == 0.4
        assert result.label == PriorityLabel.MEDIUM
        assert result.factors == ["updates"]

    def test_personal_category(self):
        result = compute_priority(["CATEGORY_PERSONAL"], sender_email=PLAIN_SENDER)
        assert result.score == 0.7
        assert result.label == PriorityLabel.HIGH

    def test_promotions_clamps_even_starred(self):
        """Category clamps run after the star boost and pull it down."""
        result = compute_priority(["STARRED", "CATEGORY_PROMOTIONS"], sender_email=PLAIN_SENDER)
        assert result.score == 0.3
        assert result.factors == ["starred", "promotional"]

    def test_categories_are_mutually_exclusive(self):
        result = compute_priority(["CATEGORY_PROMOTIONS", "CATEGORY_PERSONAL"], sender_email=PLAIN_SENDER)
        assert result.factors == ["promotional"]
        assert result.score == 0.3


class TestHeaderSignals:
    def test_importance_high(self):
        result = compute_priority([], HeaderHints(importance="High"), PLAIN_SENDER)
        assert result.score == 0.8
        assert "high-priority-header" in result.factors

    def test_priority_urgent(self):
        result = compute_priority([], HeaderHints(priority="urgent"), PLAIN_SENDER)
        assert result.score == 0.8

    def test_importance_low_ignored(self):
        result = compute_priority([], HeaderHints(importance="low"), PLAIN_SENDER)
        assert result.score == 0.5
        assert result.factors == []

    @pytest.mark.parametrize("value", ["1", "2", "1 (Highest)", "2 (High)"])
    def test_x_priority_high(self, value):
        result = compute_priority([], HeaderHints(x_priority=value), PLAIN_SENDER)
        assert result.score == 0.9
        assert "x-priority-high" in result.factors

    @pytest.mark.parametrize("value", ["3", "5 (Lowest)", "normal"])
    def test_x_priority_normal_ignored(self, value):
        result = compute_priority([], HeaderHints(x_priority=value), PLAIN_SENDER)
        assert "x-priority-high" not in result.factors

    def test_header_rules_apply_after_category(self):
        """Header rules run after category clamps and can raise a promotion."""
        result = compute_priority(["CATEGORY_PROMOTIONS"], HeaderHints(x_priority="1"), PLAIN_SENDER)
        assert result.score == 0.9
        assert result.factors == ["promotional", "x-priority-high"]


class TestSenderAndSizeSignals:
    def test_trusted_domain_bonus(self):
        result = compute_priority([], sender_email="notifications@github.com")
        assert result.score == 0.6
        assert result.is_important
        assert result.factors == ["trusted-domain"]

    def test_trusted_domain_is_case_insensitive(self):
        assert is_trusted_domain("Someone@GitHub.COM")

    def test_untrusted_domain(self):
        assert not is_trusted_domain(PLAIN_SENDER)
        assert not is_trusted_domain("not-an-address")

    def test_large_email_bonus(self):
        result = compute_priority([], sender_email=PLAIN_SENDER, size_estimate=50_001)
        assert result.score == 0.55
        assert result.factors == ["large-email"]

    def test_size_at_threshold_is_not_large(self):
        result = compute_priority([], sender_email=PLAIN_SENDER, size_estimate=50_000)
        assert "large-email" not in result.factors

    def test_bonuses_capped_at_one(self):
        result = compute_priority(["IMPORTANT"], sender_email="a@google.com", size_estimate=99_999)
        assert result.score == 1.0

    def test_promotion_from_trusted_domain(self):
        result = compute_priority(["CATEGORY_PROMOTIONS"], sender_email="deals@amazon.com")
        assert result.score == 0.4
        assert result.label == PriorityLabel.MEDIUM

    def test_sender_domain(self):
        assert sender_domain("bob@Example.ORG") == "example.org"
        assert sender_domain("") == ""

    def test_value_without_at_has_no_domain(self):
        assert sender_domain("unknown") == ""
        assert sender_domain("gmail.com") == ""

    def test_bare_trusted_domain_gets_no_bonus(self):
        result = compute_priority([], sender_email="gmail.com")
        assert result.score == 0.5
        assert result.factors == []
        assert result.label == PriorityLabel.MEDIUM


class TestLabelMapping:
    @pytest.mark.parametrize(
        "score,label",
        [
            (1.0, PriorityLabel.URGENT),
            (0.85, PriorityLabel.URGENT),
            (0.84, PriorityLabel.HIGH),
            (0.7, PriorityLabel.HIGH),
            (0.69, PriorityLabel.MEDIUM),
            (0.4, PriorityLabel.MEDIUM),
            (0.39, PriorityLabel.LOW),
            (0.0, PriorityLabel.LOW),
        ],
    )
    def test_thresholds(self, score, label):
        assert priority_label(score) == label

    def test_label_always_matches_score(self):
        cases = [
            ([], HeaderHints()),
            (["STARRED"], HeaderHints()),
            (["CATEGORY_UPDATES"], HeaderHints(importance="high")),
            (["CATEGORY_PROMOTIONS"], HeaderHints(x_priority="3")),
            (["IMPORTANT", "CATEGORY_PROMOTIONS"], HeaderHints()),
        ]
        for labels, headers in cases:
            result = compute_priority(labels, headers, "x@github.com", 60_000)
            assert result.label == priority_label(result.score)

    def test_deterministic(self):
        args = (["STARRED", "CATEGORY_UPDATES"], HeaderHints(priority="urgent"), "a@slack.com", 70_000)
        assert compute_priority(*args) == compute_priority(*args)

    def test_score_rounded_to_two_decimals(self):
        result = compute_priority(["CATEGORY_UPDATES"], sender_email="a@github.com", size_estimate=60_000)
        assert result.score == 0.55
        assert result.score == round(result.score, 2)
