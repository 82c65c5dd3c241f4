"""
Review request error hierarchy.

Input errors are the caller's fault and leave no partial state behind.
Persistence errors come from the store; a batch created before the failure
is left in place for inspection.
"""


class ReviewRequestError(Exception):
    """Base exception for the review request pipeline."""
    pass


class InputError(ReviewRequestError):
    """Rejected input (bad file, nothing to import, nobody to email)."""
    pass


class UnsupportedFileTypeError(InputError):
    """Raised when an upload is neither delimited text nor a spreadsheet."""
    pass


class FileParseError(InputError):
    """Raised when an upload cannot be decoded into rows."""
    pass


class EmptyFileError(FileParseError):
    """Raised when a spreadsheet has a header but no data rows."""
    pass


class NoValidCustomersError(InputError):
    """Raised when a parsed file yields no row with a valid email."""
    pass


class NoRecipientsError(InputError):
    """Raised when a send is requested but no customer is eligible."""
    pass


class PersistenceError(ReviewRequestError):
    """Base exception for store write failures."""
    pass


class BatchCreationError(PersistenceError):
    """The upload batch row could not be created; nothing was inserted."""
    pass


class CustomerInsertError(PersistenceError):
    """Customer rows could not be inserted; the batch stays in 'processing'."""

    def __init__(self, message: str, batch_id: str):
        super().__init__(message)
        self.batch_id = batch_id
