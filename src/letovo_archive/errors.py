"""Exception hierarchy for Letovo Archive.

NotFoundError is a recoverable absence signal. StorageUnavailableError means
the blob medium or database cannot be used and aborts an ingestion run.
TransientSourceError covers producer-side failures that a paginated run retries.
"""

from __future__ import annotations


class ArchiveError(Exception):
    """Base class for all archive errors."""


class NotFoundError(ArchiveError, LookupError):
    """A blob, row or kind does not exist."""


class BlobNotFoundError(NotFoundError):
    """No blob is stored under the given id."""

    def __init__(self, blob_id: str) -> None:
        super().__init__(f"Blob not found: {blob_id}")
        self.blob_id = blob_id


class RowNotFoundError(NotFoundError):
    """No ledger row with the given id exists for the kind."""

    def __init__(self, kind: str, row_id: int) -> None:
        super().__init__(f"No {kind} row with id {row_id}")
        self.kind = kind
        self.row_id = row_id


class UnknownKindError(NotFoundError):
    """The entity kind name is not registered."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown entity kind: {kind}")
        self.kind = kind


class StorageUnavailableError(ArchiveError, OSError):
    """The storage medium (blob directory or database) is unavailable or full."""


class TransientSourceError(ArchiveError):
    """A producer failed to fetch or normalize a page."""


class RetryExhaustedError(TransientSourceError):
    """A bounded retry spent its whole failure budget."""

    def __init__(self, failures: int, last_error: BaseException) -> None:
        super().__init__(f"Giving up after {failures} failures: {last_error!r}")
        self.failures = failures
        self.last_error = last_error
