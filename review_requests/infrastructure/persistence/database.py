"""
SQLite Database Repository - Upload Batches & Review Requests
==============================================================

Owns all durable state of the review request pipeline:
- upload_batches:  one row per uploaded customer file
- review_requests: one row per customer, unique per (user, location, email)

Idempotent transitions (first open, first click, review match, send claim)
are single conditional UPDATE statements; callers read the affected row
count to learn whether they won.
"""

import sqlite3
import logging
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union
from contextlib import contextmanager

from ...domain.models import (
    BatchMetadata,
    BatchStatus,
    CustomerRecord,
    EmailStatus,
    ParsedCustomer,
    ReviewMatchUpdate,
    SENDABLE_STATUSES,
    UploadBatch,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

DATABASE_FILE = "review_requests.db"

BATCH_COUNTER_COLUMNS = {
    "total_customers", "valid_customers", "duplicate_customers",
    "emails_sent", "emails_failed", "emails_pending", "status",
}

# Customer list filters exposed to the dashboard
CUSTOMER_FILTERS = {
    "pending": "has_reviewed = 0",
    "reviewed": "has_reviewed = 1",
    "sent": f"email_status = '{EmailStatus.SENT.value}'",
    "not_sent": f"email_status = '{EmailStatus.PENDING.value}'",
}


class Database:
    """
    SQLite store for review request batches and customers.

    Usage:
        db = Database("review_requests.db")
        db.init()

        batch = db.create_batch(meta, total_rows=120, valid_rows=97)
        db.bulk_insert_customers(batch, meta, customers)

        pending = db.get_sendable_customers(user_id="u1", location_id="loc1")
    """

    def __init__(self, db_path: Union[str, Path] = DATABASE_FILE):
        self.db_path = str(db_path)

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager; commits on success."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS upload_batches (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    location_id TEXT NOT NULL,
                    location_name TEXT DEFAULT '',
                    business_name TEXT DEFAULT '',
                    file_name TEXT DEFAULT '',
                    file_type TEXT DEFAULT '',
                    file_size INTEGER DEFAULT 0,
                    total_customers INTEGER DEFAULT 0,
                    valid_customers INTEGER DEFAULT 0,
                    duplicate_customers INTEGER DEFAULT 0,
                    emails_sent INTEGER DEFAULT 0,
                    emails_failed INTEGER DEFAULT 0,
                    emails_pending INTEGER DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'processing',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS review_requests (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    location_id TEXT NOT NULL,
                    location_name TEXT DEFAULT '',
                    business_name TEXT DEFAULT '',
                    customer_name TEXT NOT NULL,
                    customer_email TEXT NOT NULL,
                    customer_phone TEXT,
                    upload_batch_id TEXT REFERENCES upload_batches(id) ON DELETE CASCADE,
                    original_file_name TEXT DEFAULT '',
                    row_number INTEGER,
                    review_link TEXT DEFAULT '',
                    email_status TEXT NOT NULL DEFAULT 'pending',
                    email_sent_at TEXT,
                    email_sent_from TEXT,
                    email_message_id TEXT,
                    email_error TEXT,
                    request_count INTEGER NOT NULL DEFAULT 0,
                    last_request_sent_at TEXT,
                    email_opened_at TEXT,
                    email_clicked_at TEXT,
                    has_reviewed INTEGER NOT NULL DEFAULT 0,
                    review_date TEXT,
                    review_rating INTEGER,
                    review_text TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(user_id, location_id, customer_email)
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_review_requests_location "
                "ON review_requests (user_id, location_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_review_requests_batch "
                "ON review_requests (upload_batch_id)"
            )

            logger.info(f"Database initialized: {self.db_path}")

    # ── Batch CRUD ─────────────────────────────────────────────────

    def create_batch(self, meta: BatchMetadata, total_rows: int, valid_rows: int) -> UploadBatch:
        """Insert a new batch in 'processing' state."""
        batch_id = str(uuid.uuid4())
        now = utc_now_iso()

        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO upload_batches
                   (id, user_id, location_id, location_name, business_name, file_name,
                    file_type, file_size, total_customers, valid_customers, status,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (batch_id, meta.user_id, meta.location_id, meta.location_name,
                 meta.business_name, meta.file_name, meta.file_type, meta.file_size,
                 total_rows, valid_rows, BatchStatus.PROCESSING.value, now, now)
            )
            row = conn.execute("SELECT * FROM upload_batches WHERE id = ?", (batch_id,)).fetchone()
            return self._row_to_batch(row)

    def update_batch(self, batch_id: str, **updates) -> bool:
        """Update batch counters / status."""
        if not updates:
            return False

        unknown = set(updates) - BATCH_COUNTER_COLUMNS
        if unknown:
            raise ValueError(f"Unknown batch columns: {sorted(unknown)}")

        updates["updated_at"] = utc_now_iso()
        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        values = [v.value if isinstance(v, BatchStatus) else v for v in updates.values()] + [batch_id]

        with self._get_connection() as conn:
            cursor = conn.execute(f"UPDATE upload_batches SET {set_clause} WHERE id = ?", values)
            return cursor.rowcount == 1

    def get_batch(self, batch_id: str) -> Optional[UploadBatch]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM upload_batches WHERE id = ?", (batch_id,)).fetchone()
            return self._row_to_batch(row) if row else None

    def get_batches(self, user_id: str, location_id: str) -> List[UploadBatch]:
        """Batch history for a location, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM upload_batches
                   WHERE user_id = ? AND location_id = ?
                   ORDER BY created_at DESC""",
                (user_id, location_id)
            ).fetchall()
            return [self._row_to_batch(row) for row in rows]

    def count_batch_statuses(self, batch_id: str) -> Dict[str, int]:
        """Number of the batch's customers per email_status."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT email_status, COUNT(*) AS n FROM review_requests
                   WHERE upload_batch_id = ? GROUP BY email_status""",
                (batch_id,)
            ).fetchall()
            return {row["email_status"]: row["n"] for row in rows}

    def refresh_batch_counters(self, batch_id: str) -> Optional[UploadBatch]:
        """
        Recount a batch's customers by status and store the counters.

        A row still claimed ('sending') counts as pending. The batch is
        'completed' once nothing is pending, 'sending' otherwise.
        """
        counts = self.count_batch_statuses(batch_id)
        sent = counts.get(EmailStatus.SENT.value, 0)
        failed = counts.get(EmailStatus.FAILED.value, 0)
        pending = counts.get(EmailStatus.PENDING.value, 0) + counts.get(EmailStatus.SENDING.value, 0)

        self.update_batch(
            batch_id,
            emails_sent=sent,
            emails_failed=failed,
            emails_pending=pending,
            status=BatchStatus.COMPLETED if pending == 0 else BatchStatus.SENDING,
        )
        return self.get_batch(batch_id)

    # ── Customer CRUD ──────────────────────────────────────────────

    def get_existing_emails(self, user_id: str, location_id: str) -> Set[str]:
        """Lowercased emails already stored for a location."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT customer_email FROM review_requests WHERE user_id = ? AND location_id = ?",
                (user_id, location_id)
            ).fetchall()
            return {row["customer_email"].lower() for row in rows}

    def bulk_insert_customers(
        self,
        batch: UploadBatch,
        meta: BatchMetadata,
        customers: Sequence[ParsedCustomer],
    ) -> int:
        """
        Insert a batch's customers as 'pending' in a single transaction.

        Either every row is stored or none is (sqlite3 errors propagate).
        """
        if not customers:
            return 0

        now = utc_now_iso()
        records = [
            (str(uuid.uuid4()), meta.user_id, meta.location_id, meta.location_name,
             meta.business_name, c.name, c.email, c.phone, batch.id, meta.file_name,
             c.row_number, meta.review_link, EmailStatus.PENDING.value, now, now)
            for c in customers
        ]

        with self._get_connection() as conn:
            conn.executemany(
                """INSERT INTO review_requests
                   (id, user_id, location_id, location_name, business_name, customer_name,
                    customer_email, customer_phone, upload_batch_id, original_file_name,
                    row_number, review_link, email_status, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                records
            )

        logger.info(f"Inserted {len(records)} customers into batch {batch.id}")
        return len(records)

    def get_customer(self, customer_id: str) -> Optional[CustomerRecord]:
        """Get customer by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM review_requests WHERE id = ?", (customer_id,)
            ).fetchone()
            return self._row_to_customer(row) if row else None

    def get_customers(
        self,
        user_id: str,
        location_id: str,
        status: Optional[str] = None,
        batch_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[CustomerRecord]:
        """
        Customer list for a location, newest first.

        status: 'pending' (not reviewed yet), 'reviewed', 'sent' or 'not_sent'.
        Unknown values are ignored.
        """
        clauses = ["user_id = ?", "location_id = ?"]
        params: list = [user_id, location_id]

        if status in CUSTOMER_FILTERS:
            clauses.append(CUSTOMER_FILTERS[status])
        if batch_id:
            clauses.append("upload_batch_id = ?")
            params.append(batch_id)

        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(
                f"""SELECT * FROM review_requests
                    WHERE {' AND '.join(clauses)}
                    ORDER BY created_at DESC, row_number ASC
                    LIMIT ? OFFSET ?""",
                params
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    def get_location_customers(self, user_id: str, location_id: str) -> List[CustomerRecord]:
        """Every customer of a location (stats input)."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM review_requests WHERE user_id = ? AND location_id = ?",
                (user_id, location_id)
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    # ── Send loop ──────────────────────────────────────────────────

    def get_sendable_customers(
        self,
        user_id: str,
        location_id: str,
        customer_ids: Optional[Iterable[str]] = None,
        stale_before: Optional[str] = None,
    ) -> List[CustomerRecord]:
        """
        Customers not yet reviewed whose email is pending or failed.

        With stale_before, rows stuck in 'sending' since before that timestamp
        (a run that died mid-send) are included too.
        """
        statuses = [s.value for s in SENDABLE_STATUSES]
        status_clause = f"email_status IN ({', '.join('?' * len(statuses))})"
        params: list = [user_id, location_id, *statuses]
        if stale_before:
            status_clause = f"({status_clause} OR (email_status = ? AND updated_at < ?))"
            params.extend([EmailStatus.SENDING.value, stale_before])

        clauses = ["user_id = ?", "location_id = ?", "has_reviewed = 0", status_clause]

        if customer_ids is not None:
            ids = list(customer_ids)
            if ids:
                clauses.append(f"id IN ({', '.join('?' * len(ids))})")
                params.extend(ids)

        with self._get_connection() as conn:
            rows = conn.execute(
                f"""SELECT * FROM review_requests
                    WHERE {' AND '.join(clauses)}
                    ORDER BY created_at ASC, row_number ASC""",
                params
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    def claim_customer(self, customer_id: str, stale_before: Optional[str] = None) -> Optional[str]:
        """
        Compare-and-swap a sendable customer to 'sending'.

        Returns the status to restore if the send never completes (the row's
        previous status, or 'pending' for a stale claim taken over), or None
        when the row is gone, reviewed, or already claimed/sent by someone else.
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT email_status, has_reviewed, updated_at FROM review_requests WHERE id = ?",
                (customer_id,)
            ).fetchone()
            if not row or row["has_reviewed"]:
                return None

            previous = row["email_status"]
            if previous in {s.value for s in SENDABLE_STATUSES}:
                cursor = conn.execute(
                    """UPDATE review_requests SET email_status = ?, updated_at = ?
                       WHERE id = ? AND email_status = ? AND has_reviewed = 0""",
                    (EmailStatus.SENDING.value, utc_now_iso(), customer_id, previous)
                )
                return previous if cursor.rowcount == 1 else None

            if previous == EmailStatus.SENDING.value and stale_before and row["updated_at"] < stale_before:
                # Take over only the exact stale claim we looked at
                cursor = conn.execute(
                    """UPDATE review_requests SET updated_at = ?
                       WHERE id = ? AND email_status = ? AND updated_at = ? AND has_reviewed = 0""",
                    (utc_now_iso(), customer_id, EmailStatus.SENDING.value, row["updated_at"])
                )
                if cursor.rowcount == 1:
                    logger.warning(f"Reclaimed stale send claim on customer {customer_id}")
                    return EmailStatus.PENDING.value

            return None

    def release_claim(self, customer_id: str, previous_status: str) -> bool:
        """Undo a claim whose send never got recorded."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """UPDATE review_requests SET email_status = ?, updated_at = ?
                   WHERE id = ? AND email_status = ?""",
                (previous_status, utc_now_iso(), customer_id, EmailStatus.SENDING.value)
            )
            return cursor.rowcount == 1

    def record_send_result(
        self,
        customer_id: str,
        success: bool,
        sent_from: Optional[str] = None,
        message_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Write one recipient's outcome and bump its request counter."""
        now = utc_now_iso()
        with self._get_connection() as conn:
            cursor = conn.execute(
                """UPDATE review_requests
                   SET email_status = ?,
                       email_sent_at = ?,
                       email_sent_from = ?,
                       email_message_id = ?,
                       email_error = ?,
                       request_count = request_count + 1,
                       last_request_sent_at = ?,
                       updated_at = ?
                   WHERE id = ?""",
                (EmailStatus.SENT.value if success else EmailStatus.FAILED.value,
                 now if success else None,
                 sent_from, message_id, error, now, now, customer_id)
            )
            return cursor.rowcount == 1

    # ── Tracking ───────────────────────────────────────────────────

    def mark_opened(self, customer_id: str, opened_at: Optional[str] = None) -> bool:
        """Set email_opened_at only if it is still empty."""
        return self._set_once(customer_id, "email_opened_at", opened_at or utc_now_iso())

    def mark_clicked(self, customer_id: str, clicked_at: Optional[str] = None) -> bool:
        """Set email_clicked_at only if it is still empty."""
        return self._set_once(customer_id, "email_clicked_at", clicked_at or utc_now_iso())

    def _set_once(self, customer_id: str, column: str, value: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""UPDATE review_requests SET {column} = ?, updated_at = ?
                    WHERE id = ? AND {column} IS NULL""",
                (value, utc_now_iso(), customer_id)
            )
            return cursor.rowcount == 1

    # ── Attribution ────────────────────────────────────────────────

    def get_review_candidates(self, user_id: str, location_id: str) -> List[CustomerRecord]:
        """Customers emailed successfully who have not been matched to a review."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM review_requests
                   WHERE user_id = ? AND location_id = ?
                     AND email_status = ? AND has_reviewed = 0
                   ORDER BY created_at ASC, row_number ASC""",
                (user_id, location_id, EmailStatus.SENT.value)
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    def mark_reviewed(self, customer_id: str, review: ReviewMatchUpdate) -> bool:
        """Record a matched review; never reverts an existing match."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """UPDATE review_requests
                   SET has_reviewed = 1, review_date = ?, review_rating = ?,
                       review_text = ?, updated_at = ?
                   WHERE id = ? AND has_reviewed = 0""",
                (review.review_date, review.review_rating, review.review_text,
                 utc_now_iso(), customer_id)
            )
            return cursor.rowcount == 1

    # ── Deletes ────────────────────────────────────────────────────

    def delete_batch(self, user_id: str, batch_id: str) -> int:
        """Delete a batch and its customers. Returns the number of customers removed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM review_requests WHERE upload_batch_id = ? AND user_id = ?",
                (batch_id, user_id)
            )
            removed = cursor.rowcount
            conn.execute(
                "DELETE FROM upload_batches WHERE id = ? AND user_id = ?",
                (batch_id, user_id)
            )
            return removed

    def delete_customer(self, user_id: str, customer_id: str) -> bool:
        """Delete a single customer."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM review_requests WHERE id = ? AND user_id = ?",
                (customer_id, user_id)
            )
            return cursor.rowcount == 1

    def delete_all_for_location(self, user_id: str, location_id: str) -> Dict[str, int]:
        """Delete every customer and batch of a location."""
        with self._get_connection() as conn:
            customers = conn.execute(
                "DELETE FROM review_requests WHERE user_id = ? AND location_id = ?",
                (user_id, location_id)
            ).rowcount
            batches = conn.execute(
                "DELETE FROM upload_batches WHERE user_id = ? AND location_id = ?",
                (user_id, location_id)
            ).rowcount
            return {"customers": customers, "batches": batches}

    # ── Row mapping ────────────────────────────────────────────────

    def _row_to_batch(self, row: sqlite3.Row) -> UploadBatch:
        """Convert database row to UploadBatch object."""
        return UploadBatch(
            id=row["id"],
            user_id=row["user_id"],
            location_id=row["location_id"],
            location_name=row["location_name"] or "",
            business_name=row["business_name"] or "",
            file_name=row["file_name"] or "",
            file_type=row["file_type"] or "",
            file_size=row["file_size"] or 0,
            total_customers=row["total_customers"] or 0,
            valid_customers=row["valid_customers"] or 0,
            duplicate_customers=row["duplicate_customers"] or 0,
            emails_sent=row["emails_sent"] or 0,
            emails_failed=row["emails_failed"] or 0,
            emails_pending=row["emails_pending"] or 0,
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_customer(self, row: sqlite3.Row) -> CustomerRecord:
        """Convert database row to CustomerRecord object."""
        return CustomerRecord(
            id=row["id"],
            user_id=row["user_id"],
            location_id=row["location_id"],
            customer_name=row["customer_name"],
            customer_email=row["customer_email"],
            customer_phone=row["customer_phone"],
            location_name=row["location_name"] or "",
            business_name=row["business_name"] or "",
            upload_batch_id=row["upload_batch_id"],
            original_file_name=row["original_file_name"] or "",
            row_number=row["row_number"],
            review_link=row["review_link"] or "",
            email_status=row["email_status"],
            email_sent_at=row["email_sent_at"],
            email_sent_from=row["email_sent_from"],
            email_message_id=row["email_message_id"],
            email_error=row["email_error"],
            request_count=row["request_count"] or 0,
            last_request_sent_at=row["last_request_sent_at"],
            email_opened_at=row["email_opened_at"],
            email_clicked_at=row["email_clicked_at"],
            has_reviewed=bool(row["has_reviewed"]),
            review_date=row["review_date"],
            review_rating=row["review_rating"],
            review_text=row["review_text"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def init_database(db_path: Union[str, Path] = DATABASE_FILE) -> Database:
    """Create a Database handle and make sure its tables exist."""
    db = Database(db_path)
    db.init()
    return db


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
