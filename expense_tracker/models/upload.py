"""
Receipt Upload Models

An upload is a short-lived state machine with strictly ordered phases:

    IDLE -> SIGNING -> TRANSFERRING -> COMMITTING -> DONE
                    \\-> FAILED (from any phase, remembering which one)

None of these models are persisted. A session lives from form submission
until it finishes or the user resets the form.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class UploadPhase(str, Enum):
    """Phases of the sign -> transfer -> commit protocol."""
    IDLE = "idle"
    SIGNING = "signing"
    TRANSFERRING = "transferring"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


# Order in which the working phases must run
PHASE_ORDER = (
    UploadPhase.IDLE,
    UploadPhase.SIGNING,
    UploadPhase.TRANSFERRING,
    UploadPhase.COMMITTING,
    UploadPhase.DONE,
)


class ReceiptFile(BaseModel):
    """A file the user picked to attach to an expense."""
    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., min_length=1)
    content_type: str = Field(
        default="application/octet-stream",
        description="Media type sent to the signer and used for the transfer"
    )
    content: bytes = Field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class SignedUpload(BaseModel):
    """
    Response of POST /api/upload/sign.

    Fields may be null or absent so an incomplete response still parses;
    the coordinator decides whether it is usable.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    upload_url: Optional[str] = Field(default=None, alias="uploadUrl")
    key: Optional[str] = Field(default=None)

    @property
    def is_complete(self) -> bool:
        return bool(self.upload_url) and bool(self.key)


class UploadSession(BaseModel):
    """State of one receipt transfer for one expense."""

    session_id: UUID = Field(default_factory=uuid4)
    expense_id: int
    file: ReceiptFile
    created_at: datetime = Field(default_factory=datetime.utcnow)

    phase: UploadPhase = UploadPhase.IDLE
    signed: Optional[SignedUpload] = None
    storage_key: Optional[str] = None
    transferred: bool = False

    # Set only when phase is FAILED
    failed_phase: Optional[UploadPhase] = None
    last_error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.phase in (UploadPhase.DONE, UploadPhase.FAILED)

    @property
    def is_orphaned(self) -> bool:
        """
        True when the bytes reached storage but no expense references them.

        This happens after a failed commit and is reported, not healed.
        """
        return self.phase == UploadPhase.FAILED and self.transferred
