"""Tests for funnel statistics."""
import pytest

from review_requests.domain.models import CustomerRecord
from review_requests.domain.stats import compute_location_stats, compute_tracking_stats, percent

OPENED_AT = "2024-03-01T10:00:00+00:00"


def customer(index, email_status="pending", opened=False, clicked=False, reviewed=False):
    return CustomerRecord(
        id=f"c{index}",
        user_id="user-1",
        location_id="loc-1",
        customer_name=f"Customer {index}",
        customer_email=f"c{index}@example.com",
        email_status=email_status,
        email_opened_at=OPENED_AT if opened else None,
        email_clicked_at=OPENED_AT if clicked else None,
        has_reviewed=reviewed,
    )


class TestPercent:
    """Tests for whole-number percentages."""

    @pytest.mark.parametrize("part, whole, expected", [
        (0, 0, 0),
        (5, 0, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (1, 2, 50),
        (4, 4, 100),
    ])
    def test_percent(self, part, whole, expected):
        assert percent(part, whole) == expected


class TestTrackingStats:
    """Tests for the open / click / review funnel."""

    def test_no_emails_sent(self):
        stats = compute_tracking_stats([customer(1), customer(2, email_status="failed")])

        assert stats["totalCustomers"] == 2
        assert stats["totalSent"] == 0
        assert stats["openRate"] == 0
        assert stats["clickRate"] == 0
        assert stats["reviewRate"] == 0
        assert stats["clickToReviewRate"] == 0

    def test_rates(self):
        customers = [
            customer(1, "sent", opened=True, clicked=True, reviewed=True),
            customer(2, "sent", opened=True),
            customer(3, "sent"),
            customer(4, "pending"),
        ]

        stats = compute_tracking_stats(customers)

        assert stats["totalSent"] == 3
        assert (stats["opened"], stats["clicked"], stats["reviewed"]) == (2, 1, 1)
        assert stats["openRate"] == 67
        assert stats["clickRate"] == 33
        assert stats["reviewRate"] == 33
        assert stats["clickToReviewRate"] == 100

    def test_opens_only_counted_for_sent_emails(self):
        stats = compute_tracking_stats([customer(1, "failed", opened=True), customer(2, "sent")])

        assert stats["opened"] == 0
        assert stats["openRate"] == 0


class TestLocationStats:
    """Tests for the dashboard counters."""

    def test_counts(self):
        customers = [
            customer(1, "sent", opened=True, clicked=True, reviewed=True),
            customer(2, "sent", opened=True),
            customer(3, "failed"),
            customer(4, "pending"),
            customer(5, "sending"),
        ]

        stats = compute_location_stats(customers)

        assert stats == {
            "totalCustomers": 5,
            "pendingReviews": 4,
            "reviewed": 1,
            "emailsSent": 2,
            "emailsPending": 2,
            "emailsFailed": 1,
            "emailsOpened": 2,
            "emailsClicked": 1,
        }
