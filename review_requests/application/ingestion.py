"""
Customer Upload Use Case
========================

file bytes -> CustomerFileParser -> new UploadBatch + pending customer rows.

FAILURE MODES:
- Nothing valid in the file: NoValidCustomersError, no batch is created
- Batch row cannot be created: BatchCreationError, no customer is inserted
- Customer insert fails: CustomerInsertError, batch stays 'processing'
  for manual inspection (not rolled back, not retried)
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..domain.errors import BatchCreationError, CustomerInsertError, NoValidCustomersError
from ..domain.models import BatchMetadata, BatchStatus, ParsedCustomer
from ..infrastructure.importer import CustomerFileParser
from ..infrastructure.persistence import Database

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    batch_id: str
    total_rows: int
    valid_customers: int
    new_customers: int
    duplicates: int
    parse_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "batchId": self.batch_id,
            "totalRows": self.total_rows,
            "validCustomers": self.valid_customers,
            "newCustomers": self.new_customers,
            "duplicates": self.duplicates,
            "parseErrors": self.parse_errors,
        }


def ingest_customers(
    db: Database,
    meta: BatchMetadata,
    customers: Sequence[ParsedCustomer],
    total_rows: int,
) -> IngestResult:
    """
    Store parsed customers as a new batch.

    Customers whose email already exists for the same (user, location) are
    skipped and counted as duplicates, whichever batch they came from.
    """
    try:
        batch = db.create_batch(meta, total_rows=total_rows, valid_rows=len(customers))
    except sqlite3.Error as e:
        logger.error(f"Failed to create batch for {meta.file_name}: {e}")
        raise BatchCreationError("Failed to create upload batch") from e

    existing_emails = db.get_existing_emails(meta.user_id, meta.location_id)
    new_customers = [c for c in customers if c.email.lower() not in existing_emails]
    duplicates = len(customers) - len(new_customers)

    try:
        inserted = db.bulk_insert_customers(batch, meta, new_customers)
    except sqlite3.Error as e:
        logger.error(f"Failed to insert customers for batch {batch.id}: {e}")
        raise CustomerInsertError("Failed to save customer data", batch_id=batch.id) from e

    db.update_batch(
        batch.id,
        valid_customers=inserted,
        duplicate_customers=duplicates,
        emails_pending=inserted,
        status=BatchStatus.ANALYZED,
    )

    logger.info(f"Uploaded {inserted} new customers ({duplicates} duplicates skipped) into batch {batch.id}")

    return IngestResult(
        batch_id=batch.id,
        total_rows=total_rows,
        valid_customers=len(customers),
        new_customers=inserted,
        duplicates=duplicates,
    )


def upload_customer_file(
    db: Database,
    meta: BatchMetadata,
    content: bytes,
    mime_type: Optional[str] = None,
    parser: Optional[CustomerFileParser] = None,
) -> IngestResult:
    """Parse an uploaded file and ingest its customers."""
    parser = parser or CustomerFileParser()
    parsed = parser.parse(content, meta.file_name, mime_type)

    if not parsed.customers:
        raise NoValidCustomersError(
            "No valid customer data found. Ensure your file has Name and Email columns."
        )

    result = ingest_customers(db, meta, parsed.customers, total_rows=parsed.total_rows)
    result.parse_errors = list(parsed.parse_errors)
    return result
