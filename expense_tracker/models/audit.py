"""
Audit Models for Expense Tracker

Every significant client action is logged for audit purposes.
This provides:
1. Traceability of optimistic changes and how they ended
2. Debugging information when a phase of an upload fails
3. A record of stored receipts that no expense references

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the mutation and upload protocols has its own event type.
    """
    # List reads
    EXPENSES_FETCHED = "expenses_fetched"
    FETCH_FAILED = "fetch_failed"
    FETCH_DISCARDED = "fetch_discarded"

    # Input validation
    VALIDATION_FAILED = "validation_failed"

    # Optimistic mutations
    MUTATION_APPLIED = "mutation_applied"
    MUTATION_COMMITTED = "mutation_committed"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"

    # Receipt uploads
    UPLOAD_STARTED = "upload_started"
    UPLOAD_PHASE_COMPLETED = "upload_phase_completed"
    UPLOAD_FAILED = "upload_failed"
    UPLOAD_COMMITTED = "upload_committed"
    UPLOAD_ORPHANED = "upload_orphaned"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'collection', 'upload')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all phases of one upload)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.mutation_applied(mutation, correlation_id)
        event = AuditEventBuilder.upload_failed(session, correlation_id)
    """

    @staticmethod
    def expenses_fetched(
        collection_key: str,
        count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_FETCHED,
            severity=AuditSeverity.DEBUG,
            entity_type="collection",
            entity_id=collection_key,
            correlation_id=correlation_id,
            description=f"Fetched {count} expenses",
            details={"count": count},
        )

    @staticmethod
    def fetch_failed(
        collection_key: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=collection_key,
            correlation_id=correlation_id,
            description="Failed to fetch expenses",
            error_message=error_message,
        )

    @staticmethod
    def fetch_discarded(
        collection_key: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="collection",
            entity_id=collection_key,
            correlation_id=correlation_id,
            description="Discarded a fetch that was cancelled while in flight",
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Input rejected with {len(issues)} issue(s)",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def mutation_applied(
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_APPLIED,
            entity_type="expense",
            entity_id=str(target) if target is not None else None,
            correlation_id=correlation_id,
            description=f"Optimistic {kind} applied",
            details={"mutation_id": str(mutation_id), "kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def mutation_committed(
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_COMMITTED,
            entity_type="expense",
            entity_id=str(target) if target is not None else None,
            correlation_id=correlation_id,
            description=f"Server confirmed {kind}",
            details={"mutation_id": str(mutation_id), "kind": kind},
        )

    @staticmethod
    def mutation_rolled_back(
        mutation_id: UUID,
        kind: str,
        target: Optional[int],
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=str(target) if target is not None else None,
            correlation_id=correlation_id,
            description=f"Server rejected {kind}; view restored",
            details={"mutation_id": str(mutation_id), "kind": kind},
            error_message=error_message,
        )

    @staticmethod
    def upload_started(
        session_id: UUID,
        expense_id: int,
        filename: str,
        size_bytes: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_STARTED,
            entity_type="upload",
            entity_id=str(session_id),
            correlation_id=correlation_id,
            description=f"Receipt upload started: {filename}",
            details={
                "expense_id": expense_id,
                "filename": filename,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def upload_phase_completed(
        session_id: UUID,
        phase: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_PHASE_COMPLETED,
            severity=AuditSeverity.DEBUG,
            entity_type="upload",
            entity_id=str(session_id),
            correlation_id=correlation_id,
            description=f"Upload phase completed: {phase}",
            details={"phase": phase},
        )

    @staticmethod
    def upload_failed(
        session_id: UUID,
        phase: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="upload",
            entity_id=str(session_id),
            correlation_id=correlation_id,
            description=f"Upload failed during {phase}",
            details={"phase": phase},
            error_message=error_message,
        )

    @staticmethod
    def upload_committed(
        session_id: UUID,
        expense_id: int,
        storage_key: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_COMMITTED,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description="Receipt attached to expense",
            details={"session_id": str(session_id), "storage_key": storage_key},
        )

    @staticmethod
    def upload_orphaned(
        session_id: UUID,
        expense_id: int,
        storage_key: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_ORPHANED,
            severity=AuditSeverity.WARNING,
            entity_type="upload",
            entity_id=str(session_id),
            correlation_id=correlation_id,
            description="Receipt stored but not attached to any expense",
            details={"expense_id": expense_id, "storage_key": storage_key},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
