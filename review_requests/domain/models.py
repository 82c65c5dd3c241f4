"""
Domain Models - Upload Batches & Customer Records
==================================================

Plain dataclasses shared by every layer. The store converts its rows into
these objects; nothing above the persistence layer sees raw rows.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (the store's timestamp format)."""
    return datetime.now(timezone.utc).isoformat()


def utc_iso_seconds_ago(seconds: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=seconds)).isoformat()


class EmailStatus(str, Enum):
    """Email lifecycle of a customer record."""
    PENDING = "pending"
    SENDING = "sending"   # claimed by a running send loop
    SENT = "sent"
    FAILED = "failed"


# Statuses a send loop may pick up; failed rows are retried implicitly.
SENDABLE_STATUSES = (EmailStatus.PENDING, EmailStatus.FAILED)


class BatchStatus(str, Enum):
    """Lifecycle of an upload batch."""
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    SENDING = "sending"
    COMPLETED = "completed"


class RowSource(str, Enum):
    """Which decoder produced a raw row."""
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"


@dataclass(frozen=True)
class RawRow:
    """
    A header-indexed row straight out of a decoder.

    Cells are keyed by the trimmed, lowercased header. Only the normalizer
    looks at these; everything downstream works on ParsedCustomer.
    """
    source: RowSource
    row_number: int
    cells: Dict[str, str]


@dataclass(frozen=True)
class ParsedCustomer:
    """A validated, deduplicated customer from an uploaded file."""
    name: str
    email: str
    phone: Optional[str]
    row_number: int


@dataclass(frozen=True)
class BatchMetadata:
    """Everything known about an upload before its rows are stored."""
    user_id: str
    location_id: str
    business_name: str
    file_name: str
    file_size: int
    location_name: str = ""
    review_link: str = ""

    @property
    def file_type(self) -> str:
        return self.file_name.rsplit(".", 1)[-1].lower() if "." in self.file_name else ""


@dataclass
class UploadBatch:
    """One file upload and its counters."""
    id: str
    user_id: str
    location_id: str
    location_name: str = ""
    business_name: str = ""
    file_name: str = ""
    file_type: str = ""
    file_size: int = 0
    total_customers: int = 0
    valid_customers: int = 0
    duplicate_customers: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    emails_pending: int = 0
    status: str = BatchStatus.PROCESSING.value
    created_at: str = ""
    updated_at: str = ""


@dataclass
class CustomerRecord:
    """Customer row: contact info, email lifecycle and review outcome."""
    id: str
    user_id: str
    location_id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    location_name: str = ""
    business_name: str = ""
    upload_batch_id: Optional[str] = None
    original_file_name: str = ""
    row_number: Optional[int] = None
    review_link: str = ""
    email_status: str = EmailStatus.PENDING.value
    email_sent_at: Optional[str] = None
    email_sent_from: Optional[str] = None
    email_message_id: Optional[str] = None
    email_error: Optional[str] = None
    request_count: int = 0
    last_request_sent_at: Optional[str] = None
    email_opened_at: Optional[str] = None
    email_clicked_at: Optional[str] = None
    has_reviewed: bool = False
    review_date: Optional[str] = None
    review_rating: Optional[int] = None
    review_text: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class ReviewMatchUpdate:
    """Review details written onto a matched customer."""
    review_date: str
    review_rating: Optional[int] = None
    review_text: Optional[str] = None
