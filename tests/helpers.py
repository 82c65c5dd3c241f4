"""Shared test doubles and data builders."""
from typing import Dict, List, Optional, Sequence

from review_requests.application import ingest_customers
from review_requests.domain.models import BatchMetadata, ParsedCustomer
from review_requests.infrastructure.mailer import MailTransport, OutgoingEmail, SendResult
from review_requests.infrastructure.persistence import Database

USER_ID = "user-1"
LOCATION_ID = "loc-1"
REVIEW_LINK = "https://search.google.com/local/writereview?placeid=PLACE123"
TRACKING_BASE_URL = "https://api.example.test"


class RecordingTransport(MailTransport):
    """Fake transport that records every email and fails on demand."""

    def __init__(self, fail_for: Sequence[str] = (), raise_for: Optional[Dict[str, BaseException]] = None):
        self.sent_emails: List[OutgoingEmail] = []
        self.fail_for = set(fail_for)
        self.raise_for = dict(raise_for or {})

    def send(self, email: OutgoingEmail) -> SendResult:
        self.sent_emails.append(email)
        if email.to in self.raise_for:
            raise self.raise_for[email.to]
        if email.to in self.fail_for:
            return SendResult(success=False, sent_from="noreply@example.test", error="550 mailbox unavailable")
        return SendResult(
            success=True,
            message_id=f"msg-{len(self.sent_emails)}@example.test",
            sent_from="noreply@example.test",
        )

    def status(self):
        return {"totalAccounts": 1, "accounts": [{"email": "noreply@example.test", "status": "active"}]}


class RecordingSleep:
    """Stands in for time.sleep so tests never wait."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_csv(rows: Sequence[Sequence[str]], header: Sequence[str] = ("Name", "Email", "Phone")) -> bytes:
    lines = [",".join(header)] + [",".join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


def seed_customers(db: Database, meta: BatchMetadata, people: Sequence[tuple]) -> List[str]:
    """Ingest (name, email) pairs as one batch; returns customer ids in insert order."""
    parsed = [
        ParsedCustomer(name=name, email=email, phone=None, row_number=index + 2)
        for index, (name, email) in enumerate(people)
    ]
    result = ingest_customers(db, meta, parsed, total_rows=len(parsed))
    customers = db.get_customers(meta.user_id, meta.location_id, batch_id=result.batch_id, limit=1000)
    by_email = {c.customer_email: c.id for c in customers}
    return [by_email[email] for _, email in people]


def mark_sent(db: Database, customer_ids: Sequence[str]) -> None:
    for customer_id in customer_ids:
        db.record_send_result(customer_id, success=True, sent_from="noreply@example.test", message_id="m")
