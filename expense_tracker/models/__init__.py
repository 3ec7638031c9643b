"""
Data Models Package

This package contains all Pydantic models used by the expense tracker client.
All data flowing through the client must conform to these schemas.
"""

from expense_tracker.models.expense import (
    CreatedExpenseResponse,
    Expense,
    ExpenseCollection,
    MutationKind,
    MutationOutcome,
    NewExpense,
    PendingMutation,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.upload import (
    PHASE_ORDER,
    ReceiptFile,
    SignedUpload,
    UploadPhase,
    UploadSession,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CreatedExpenseResponse",
    "Expense",
    "ExpenseCollection",
    "MutationKind",
    "MutationOutcome",
    "NewExpense",
    "PendingMutation",
    "ValidationIssue",
    "ValidationResult",
    # Upload models
    "PHASE_ORDER",
    "ReceiptFile",
    "SignedUpload",
    "UploadPhase",
    "UploadSession",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
