"""
TaxTrack error types.

Every failure here is recoverable: callers catch these per operation, show a
message and carry on with the next item.
"""
from typing import Optional


class TaxTrackError(Exception):
    """Base exception with a user-facing message."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class PersistenceError(TaxTrackError):
    """Writing the local slot store failed."""


class RemoteStoreError(TaxTrackError):
    """The REST backend was unreachable or answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message, detail=detail)


class AuthenticationError(RemoteStoreError):
    """Missing, rejected or expired bearer token."""


class RecognitionError(TaxTrackError):
    """OCR failed for a single image."""


class RecognitionUnavailable(RecognitionError):
    """The OCR engine could not be loaded at all."""
