# Application Layer
# =================
# Use cases and orchestration (no business rules):
# - ingestion: parse an upload and store a batch of customers
# - dispatch: sequential, throttled review request emails
# - tracking: open pixel / click redirect bookkeeping
# - attribution: persist review-to-customer matches
# - service: the operations exposed to the web layer

from .attribution import AttributionResult, MatchedCustomer, ReviewAttributor
from .dispatch import (
    DispatchSummary,
    OutcomeStatus,
    ReviewRequestDispatcher,
    SendOutcome,
    SendProgress,
)
from .ingestion import IngestResult, ingest_customers, upload_customer_file
from .service import ReviewRequestService
from .tracking import record_click, record_open
