"""Funnel statistics (sent -> opened -> clicked -> reviewed) over customer records."""

from typing import Dict, Iterable

from .models import CustomerRecord, EmailStatus

# A claimed row has not been delivered yet
UNSENT_STATUSES = {EmailStatus.PENDING.value, EmailStatus.SENDING.value}


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounded half up; 0 when there is no denominator."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (whole * 2)


def compute_location_stats(customers: Iterable[CustomerRecord]) -> Dict[str, int]:
    """Counts by email status, review state and tracking timestamps."""
    customers = list(customers)

    return {
        "totalCustomers": len(customers),
        "pendingReviews": sum(1 for c in customers if not c.has_reviewed),
        "reviewed": sum(1 for c in customers if c.has_reviewed),
        "emailsSent": sum(1 for c in customers if c.email_status == EmailStatus.SENT.value),
        "emailsPending": sum(1 for c in customers if c.email_status in UNSENT_STATUSES),
        "emailsFailed": sum(1 for c in customers if c.email_status == EmailStatus.FAILED.value),
        "emailsOpened": sum(1 for c in customers if c.email_opened_at),
        "emailsClicked": sum(1 for c in customers if c.email_clicked_at),
    }


def compute_tracking_stats(customers: Iterable[CustomerRecord]) -> Dict[str, int]:
    """Open / click / review rates as percentages of emails sent."""
    customers = list(customers)

    sent = [c for c in customers if c.email_status == EmailStatus.SENT.value]
    total_sent = len(sent)
    opened = sum(1 for c in sent if c.email_opened_at)
    clicked = sum(1 for c in sent if c.email_clicked_at)
    reviewed = sum(1 for c in customers if c.has_reviewed)

    return {
        "totalCustomers": len(customers),
        "totalSent": total_sent,
        "opened": opened,
        "clicked": clicked,
        "reviewed": reviewed,
        "openRate": percent(opened, total_sent),
        "clickRate": percent(clicked, total_sent),
        "reviewRate": percent(reviewed, total_sent),
        "clickToReviewRate": percent(reviewed, clicked),
    }
