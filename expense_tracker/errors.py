"""
Error Taxonomy

DESIGN DECISION: Every failure the user can see has its own exception type.
The type says WHERE things went wrong:

- ValidationError: bad input, raised before any network call
- FetchError: the list read failed, the view was not touched
- ConfirmError: the server rejected a create/delete, the view was rolled back
- SignError / TransferError / CommitError: an upload phase failed

Upload errors carry the phase they failed in. Earlier phases that
succeeded are NOT undone (a CommitError leaves the stored object behind).
"""

from typing import Optional

from expense_tracker.models.expense import ValidationIssue
from expense_tracker.models.upload import UploadPhase


class ExpenseTrackerError(Exception):
    """Base exception for all user-visible failures."""

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ExpenseTrackerError):
    """User input was rejected before reaching the network."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class FetchError(ExpenseTrackerError):
    """Reading the expense list failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ConfirmError(ExpenseTrackerError):
    """The server did not confirm an optimistic mutation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UploadError(ExpenseTrackerError):
    """Base exception for receipt upload failures."""

    phase: UploadPhase = UploadPhase.FAILED

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SignError(UploadError):
    """The signing service refused or returned an unusable destination."""

    phase = UploadPhase.SIGNING


class TransferError(UploadError):
    """Object storage did not accept the file bytes."""

    phase = UploadPhase.TRANSFERRING


class CommitError(UploadError):
    """
    The expense could not be pointed at the stored receipt.

    The bytes are already in storage at this point.
    """

    phase = UploadPhase.COMMITTING

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        storage_key: Optional[str] = None,
    ):
        self.storage_key = storage_key
        super().__init__(message, status_code)


class UploadStateError(ExpenseTrackerError):
    """An upload phase was run out of order."""
    pass
