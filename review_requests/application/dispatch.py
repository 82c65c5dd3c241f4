"""
Review Request Dispatch - Sequential Tracked Email Campaign
============================================================

Sends one review request email per eligible customer, one at a time, with a
fixed pause between sends.

SAFETY:
- Sequential on purpose: receiving servers penalize bursts, so the loop
  trades throughput for sender reputation. Do not parallelize.
- Each recipient is claimed (pending|failed -> sending) right before its
  send, so two overlapping runs for the same location never email the same
  customer twice.
- A claim whose result never gets recorded is released on the way out. A
  claim left behind by a process that died outright goes stale after
  DispatchSettings.claim_timeout_seconds and is picked up by the next run.
- A failed send never stops the loop; every recipient ends up with an
  explicit SendOutcome.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

from ..domain.errors import NoRecipientsError
from ..domain.models import CustomerRecord, utc_iso_seconds_ago
from ..infrastructure.config import DispatchSettings, TrackingSettings
from ..infrastructure.mailer import (
    MailTransport,
    OutgoingEmail,
    SendResult,
    render_review_request,
    review_request_subject,
)
from ..infrastructure.persistence import Database

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # claimed by a concurrent run


@dataclass(frozen=True)
class SendOutcome:
    """Result of one recipient in the send loop."""
    customer_id: str
    email: str
    status: OutcomeStatus
    message_id: Optional[str] = None
    sent_from: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SENT

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "email": self.email,
            "success": self.success,
            "status": self.status.value,
            "messageId": self.message_id,
            "sentFrom": self.sent_from,
            "error": self.error,
        }


@dataclass(frozen=True)
class SendProgress:
    current: int
    total: int
    sent: int
    failed: int


@dataclass
class DispatchSummary:
    total: int
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[SendOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
        }


ProgressCallback = Callable[[SendProgress], None]


class ReviewRequestDispatcher:
    """
    Sends tracked review request emails for one location.

    Usage:
        dispatcher = ReviewRequestDispatcher(db, transport, tracking, dispatch)
        summary = dispatcher.send_review_requests(user_id="u1", location_id="loc1")
        print(f"{summary.sent} sent, {summary.failed} failed")
    """

    def __init__(
        self,
        db: Database,
        transport: MailTransport,
        tracking: TrackingSettings,
        dispatch: DispatchSettings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.transport = transport
        self.tracking = tracking
        self.delay_seconds = dispatch.send_delay_seconds
        self.claim_timeout_seconds = dispatch.claim_timeout_seconds
        self._sleep = sleep

    def send_review_requests(
        self,
        user_id: str,
        location_id: str,
        customer_ids: Optional[Iterable[str]] = None,
        business_name: Optional[str] = None,
        review_link: Optional[str] = None,
        sender_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DispatchSummary:
        """
        Email every eligible customer (optionally restricted to customer_ids).

        Eligible: not reviewed yet and email_status pending or failed, or
        stuck in sending for longer than the claim timeout.
        Raises NoRecipientsError when nobody qualifies.
        """
        stale_before = utc_iso_seconds_ago(self.claim_timeout_seconds)
        customers = self.db.get_sendable_customers(user_id, location_id, customer_ids, stale_before)
        if not customers:
            raise NoRecipientsError(
                "No customers found to send review requests. "
                "All customers may have already received emails or left reviews."
            )

        business_name = business_name or customers[0].business_name
        sender_name = sender_name or business_name

        summary = DispatchSummary(total=len(customers))
        touched_batches: Set[str] = set()

        logger.info(f"Sending review requests to {len(customers)} customers of location {location_id}")

        try:
            for index, customer in enumerate(customers):
                if customer.upload_batch_id:
                    touched_batches.add(customer.upload_batch_id)

                outcome = self._process(customer, business_name, review_link, sender_name, stale_before)
                summary.results.append(outcome)

                if outcome.status is OutcomeStatus.SENT:
                    summary.sent += 1
                elif outcome.status is OutcomeStatus.FAILED:
                    summary.failed += 1
                else:
                    summary.skipped += 1

                if on_progress:
                    on_progress(SendProgress(
                        current=index + 1,
                        total=summary.total,
                        sent=summary.sent,
                        failed=summary.failed,
                    ))

                # Rate limiting between emails, not after the last one
                if index < len(customers) - 1 and self.delay_seconds > 0:
                    self._sleep(self.delay_seconds)
        finally:
            for batch_id in touched_batches:
                self.db.refresh_batch_counters(batch_id)

        logger.info(f"Sent {summary.sent} emails, {summary.failed} failed, {summary.skipped} skipped")
        return summary

    def _process(
        self,
        customer: CustomerRecord,
        business_name: str,
        review_link: Optional[str],
        sender_name: str,
        stale_before: str,
    ) -> SendOutcome:
        restore_status = self.db.claim_customer(customer.id, stale_before)
        if restore_status is None:
            logger.warning(f"Customer {customer.id} was claimed by another send run, skipping")
            return SendOutcome(customer.id, customer.customer_email, OutcomeStatus.SKIPPED)

        try:
            email = self.build_email(customer, business_name, review_link or customer.review_link, sender_name)

            try:
                result = self.transport.send(email)
            except Exception as e:
                logger.exception(f"Error sending review request to {customer.customer_email}: {e}")
                result = SendResult(success=False, error=str(e))

            self.db.record_send_result(
                customer.id,
                success=result.success,
                sent_from=result.sent_from,
                message_id=result.message_id,
                error=result.error,
            )
        except BaseException:
            # Nothing recorded for this row: hand it back to the next run
            self.db.release_claim(customer.id, restore_status)
            raise

        if not result.success:
            logger.warning(f"Review request to {customer.customer_email} failed: {result.error}")

        return SendOutcome(
            customer_id=customer.id,
            email=customer.customer_email,
            status=OutcomeStatus.SENT if result.success else OutcomeStatus.FAILED,
            message_id=result.message_id,
            sent_from=result.sent_from,
            error=result.error,
        )

    def build_email(
        self,
        customer: CustomerRecord,
        business_name: str,
        review_link: str,
        sender_name: str,
    ) -> OutgoingEmail:
        """Render the tracked email for one customer."""
        if self.tracking.enabled:
            pixel_url = self.tracking.open_url(customer.id)
            cta_link = self.tracking.click_url(customer.id)
        else:
            pixel_url = None
            cta_link = review_link

        return OutgoingEmail(
            to=customer.customer_email,
            subject=review_request_subject(business_name),
            html=render_review_request(
                customer_name=customer.customer_name,
                business_name=business_name,
                review_link=cta_link,
                tracking_pixel_url=pixel_url,
            ),
            sender_name=sender_name,
        )
