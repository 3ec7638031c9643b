"""
Staged Upload Coordinator

Attaches a receipt to an existing expense in three phases:

    SIGNING       ask the signer for {uploadUrl, key}
    TRANSFERRING  PUT the bytes straight to uploadUrl
    COMMITTING    PATCH the expense with {fileKey: key}

Each phase is its own transition method, so each can be driven and
tested on its own. run() drives them in order.

CRITICAL RULES:
- Phases run in strict order. None is skipped, none re-entered after success.
- Nothing is retried. A transfer retry would need a fresh signature.
- A failure moves the session to FAILED and records which phase failed.
- Completed phases are never undone. After a CommitError the receipt sits
  in storage with no expense pointing at it; that is reported, not healed.
"""

from typing import Optional
from uuid import UUID

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import (
    CommitError,
    SignError,
    TransferError,
    UploadError,
    UploadStateError,
)
from expense_tracker.models.upload import (
    PHASE_ORDER,
    ReceiptFile,
    UploadPhase,
    UploadSession,
)
from expense_tracker.services.api import (
    ApiError,
    ExpenseApiInterface,
    ReceiptTransferInterface,
)


INVALID_SIGNING_RESPONSE = "Invalid signing response"


def _status_text(error: ApiError) -> str:
    """Server text if any, else the status code, else the transport message."""
    if error.body.strip():
        return error.body.strip()
    if error.status_code is not None:
        return str(error.status_code)
    return str(error)


class StagedUploadCoordinator:
    """
    Drives the sign -> transfer -> commit protocol for upload sessions.

    Holds no per-session state itself; sessions for different expenses
    are fully independent and may interleave.
    """

    def __init__(
        self,
        api: ExpenseApiInterface,
        transfer: ReceiptTransferInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._api = api
        self._transfer = transfer
        self._audit_logger = audit_logger

    async def start(
        self,
        expense_id: int,
        file: ReceiptFile,
        correlation_id: Optional[UUID] = None,
    ) -> UploadSession:
        """Create a new session in IDLE."""
        session = UploadSession(expense_id=expense_id, file=file)
        if self._audit_logger:
            await self._audit_logger.log_upload_started(session, correlation_id)
        return session

    async def run(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Drive a session from IDLE to DONE.

        Returns:
            The committed storage key

        Raises:
            SignError, TransferError, CommitError: The phase that failed
        """
        await self.sign(session, correlation_id)
        await self.transfer(session, correlation_id)
        return await self.commit(session, correlation_id)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def sign(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """IDLE -> SIGNING -> (ready to transfer)"""
        self._enter(session, UploadPhase.SIGNING)
        try:
            signed = await self._api.sign_upload(
                session.file.filename, session.file.content_type
            )
        except ApiError as e:
            error = SignError(
                f"Failed to sign upload URL: {_status_text(e)}",
                status_code=e.status_code,
            )
            await self._fail(session, error, correlation_id)
            raise error from e

        # An incomplete descriptor is rejected here, not left for the transfer
        if not signed.is_complete:
            error = SignError(INVALID_SIGNING_RESPONSE)
            await self._fail(session, error, correlation_id)
            raise error

        session.signed = signed
        session.storage_key = signed.key
        await self._completed(session, correlation_id)

    async def transfer(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """SIGNING -> TRANSFERRING"""
        self._enter(session, UploadPhase.TRANSFERRING)
        try:
            await self._transfer.put_object(
                session.signed.upload_url,
                session.file.content,
                session.file.content_type,
            )
        except ApiError as e:
            if e.is_transport_error:
                message = f"File upload failed: {e}"
                if self._audit_logger:
                    await self._audit_logger.log_external_service_error(
                        service="object_storage",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
            else:
                message = f"File upload failed: {e.status_code} {e.body}".rstrip()
            error = TransferError(message, status_code=e.status_code)
            await self._fail(session, error, correlation_id)
            raise error from e

        session.transferred = True
        await self._completed(session, correlation_id)

    async def commit(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """TRANSFERRING -> COMMITTING -> DONE"""
        self._enter(session, UploadPhase.COMMITTING)
        try:
            await self._api.attach_file(session.expense_id, session.storage_key)
        except ApiError as e:
            error = CommitError(
                f"Failed to update expense: {_status_text(e)}",
                status_code=e.status_code,
                storage_key=session.storage_key,
            )
            await self._fail(session, error, correlation_id)
            raise error from e

        await self._completed(session, correlation_id)
        session.phase = UploadPhase.DONE
        if self._audit_logger:
            await self._audit_logger.log_upload_committed(session, correlation_id)
        return session.storage_key

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _enter(self, session: UploadSession, phase: UploadPhase) -> None:
        """Move to phase, which must directly follow the current one."""
        expected = PHASE_ORDER[PHASE_ORDER.index(phase) - 1]
        if session.phase != expected:
            raise UploadStateError(
                f"Cannot enter {phase.value} from {session.phase.value}"
            )
        session.phase = phase

    async def _completed(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_upload_phase_completed(
                session, session.phase.value, correlation_id
            )

    async def _fail(
        self,
        session: UploadSession,
        error: UploadError,
        correlation_id: Optional[UUID],
    ) -> None:
        """Move the session to FAILED, remembering the phase that failed."""
        session.failed_phase = session.phase
        session.phase = UploadPhase.FAILED
        session.last_error = str(error)
        if self._audit_logger:
            await self._audit_logger.log_upload_failed(session, correlation_id)
