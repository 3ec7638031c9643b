"""
Audit Logger

DESIGN DECISION: Every significant client action is logged.
This provides:
1. Traceability of every optimistic change and how it ended
2. Debugging capability when an upload phase fails
3. A record of receipts stored without an expense pointing at them

The audit logger:
- Is async so it fits the flows that call it
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.models.upload import UploadSession
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for later inspection), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage is not None:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expenses_fetched(
        self,
        collection_key: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful list read."""
        await self.log(AuditEventBuilder.expenses_fetched(
            collection_key=collection_key,
            count=count,
            correlation_id=correlation_id,
        ))

    async def log_fetch_failed(
        self,
        collection_key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed list read."""
        await self.log(AuditEventBuilder.fetch_failed(
            collection_key=collection_key,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_fetch_discarded(
        self,
        collection_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a list read whose result was ignored."""
        await self.log(AuditEventBuilder.fetch_discarded(
            collection_key=collection_key,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rejected user input."""
        await self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_mutation_applied(
        self,
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_applied(
            mutation_id=mutation_id,
            kind=kind,
            target=target,
            correlation_id=correlation_id,
        ))

    async def log_mutation_committed(
        self,
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_committed(
            mutation_id=mutation_id,
            kind=kind,
            target=target,
            correlation_id=correlation_id,
        ))

    async def log_mutation_rolled_back(
        self,
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.mutation_rolled_back(
            mutation_id=mutation_id,
            kind=kind,
            target=target,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_upload_started(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the start of a receipt upload."""
        await self.log(AuditEventBuilder.upload_started(
            session_id=session.session_id,
            expense_id=session.expense_id,
            filename=session.file.filename,
            size_bytes=session.file.size_bytes,
            correlation_id=correlation_id,
        ))

    async def log_upload_phase_completed(
        self,
        session: UploadSession,
        phase: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.upload_phase_completed(
            session_id=session.session_id,
            phase=phase,
            correlation_id=correlation_id,
        ))

    async def log_upload_failed(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed upload, plus the orphan it left behind if any."""
        failed_phase = session.failed_phase.value if session.failed_phase else "unknown"
        await self.log(AuditEventBuilder.upload_failed(
            session_id=session.session_id,
            phase=failed_phase,
            error_message=session.last_error or "",
            correlation_id=correlation_id,
        ))
        if session.is_orphaned:
            await self.log(AuditEventBuilder.upload_orphaned(
                session_id=session.session_id,
                expense_id=session.expense_id,
                storage_key=session.storage_key or "",
                correlation_id=correlation_id,
            ))

    async def log_upload_committed(
        self,
        session: UploadSession,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.upload_committed(
            session_id=session.session_id,
            expense_id=session.expense_id,
            storage_key=session.storage_key or "",
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
