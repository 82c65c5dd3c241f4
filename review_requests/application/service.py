"""
Review Request Service - Operations Exposed to the Web Layer
=============================================================

One object wiring the store, the mail transport and the settings into the
use cases. Nothing here is global: the web app (or a script) constructs the
service with an explicit Database handle and passes it around.
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..domain.models import BatchMetadata, CustomerRecord, UploadBatch
from ..domain.stats import compute_location_stats, compute_tracking_stats
from ..infrastructure.config import Settings
from ..infrastructure.importer import CustomerFileParser
from ..infrastructure.mailer import MailTransport
from ..infrastructure.persistence import Database
from .attribution import AttributionResult, ReviewAttributor, ReviewInput
from .dispatch import DispatchSummary, ProgressCallback, ReviewRequestDispatcher
from .ingestion import IngestResult, upload_customer_file
from .tracking import record_click, record_open

logger = logging.getLogger(__name__)


class ReviewRequestService:
    """
    Usage:
        service = ReviewRequestService(db, SmtpMailTransport.from_settings(settings.mail), settings)
        service.upload(meta, content, mime_type="text/csv")
        summary = service.send_review_requests("u1", "loc1")
    """

    def __init__(
        self,
        db: Database,
        transport: MailTransport,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.transport = transport
        self.settings = settings
        self.parser = CustomerFileParser()
        self.dispatcher = ReviewRequestDispatcher(
            db, transport, settings.tracking, settings.dispatch, sleep=sleep
        )
        self.attributor = ReviewAttributor(db)

    # ── Pipeline ───────────────────────────────────────────────────

    def upload(self, meta: BatchMetadata, content: bytes, mime_type: Optional[str] = None) -> IngestResult:
        return upload_customer_file(self.db, meta, content, mime_type, parser=self.parser)

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
        return self.dispatcher.send_review_requests(
            user_id,
            location_id,
            customer_ids=customer_ids,
            business_name=business_name,
            review_link=review_link,
            sender_name=sender_name,
            on_progress=on_progress,
        )

    def track_open(self, customer_id: str) -> bool:
        return record_open(self.db, customer_id)

    def track_click(self, customer_id: str) -> Optional[str]:
        return record_click(self.db, customer_id)

    def match_reviews(
        self, user_id: str, location_id: str, reviews: Optional[Sequence[ReviewInput]]
    ) -> AttributionResult:
        return self.attributor.match_reviews(user_id, location_id, reviews)

    # ── Reads ──────────────────────────────────────────────────────

    def get_customers(
        self,
        user_id: str,
        location_id: str,
        status: Optional[str] = None,
        batch_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[CustomerRecord]:
        return self.db.get_customers(user_id, location_id, status, batch_id, limit, offset)

    def get_batches(self, user_id: str, location_id: str) -> List[UploadBatch]:
        return self.db.get_batches(user_id, location_id)

    def get_stats(self, user_id: str, location_id: str) -> Dict[str, int]:
        return compute_location_stats(self.db.get_location_customers(user_id, location_id))

    def get_tracking_stats(self, user_id: str, location_id: str) -> Dict[str, int]:
        return compute_tracking_stats(self.db.get_location_customers(user_id, location_id))

    def get_transport_status(self) -> Dict[str, object]:
        return self.transport.status()

    # ── Deletes ────────────────────────────────────────────────────

    def delete_batch(self, user_id: str, batch_id: str) -> int:
        removed = self.db.delete_batch(user_id, batch_id)
        logger.info(f"Deleted batch {batch_id} ({removed} customers)")
        return removed

    def delete_customer(self, user_id: str, customer_id: str) -> bool:
        deleted = self.db.delete_customer(user_id, customer_id)
        if deleted:
            logger.info(f"Deleted customer {customer_id}")
        return deleted

    def delete_all_for_location(self, user_id: str, location_id: str) -> Dict[str, int]:
        counts = self.db.delete_all_for_location(user_id, location_id)
        logger.info(f"Deleted all customers for location {location_id}: {counts}")
        return counts
