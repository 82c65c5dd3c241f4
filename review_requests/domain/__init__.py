# Domain Layer
# ============
# Pure business logic with no I/O:
# - models: upload batches, customer records, parsed rows
# - name_matching: fuzzy reviewer-to-customer attribution
# - stats: funnel metrics
# - errors: pipeline exception hierarchy

from .errors import (
    ReviewRequestError,
    InputError,
    UnsupportedFileTypeError,
    FileParseError,
    EmptyFileError,
    NoValidCustomersError,
    NoRecipientsError,
    PersistenceError,
    BatchCreationError,
    CustomerInsertError,
)
from .models import (
    EmailStatus,
    BatchStatus,
    RowSource,
    RawRow,
    ParsedCustomer,
    BatchMetadata,
    UploadBatch,
    CustomerRecord,
    ReviewMatchUpdate,
)
from .name_matching import (
    ExternalReview,
    MatchCandidate,
    MatchAssignment,
    MatchOutcome,
    normalize_name,
    names_match,
    parse_star_rating,
    match_reviews,
)
