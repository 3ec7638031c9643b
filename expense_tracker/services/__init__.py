"""Services package."""

from expense_tracker.services.api import (
    ApiError,
    ExpenseApiInterface,
    HttpExpenseApiClient,
    HttpReceiptTransfer,
    ReceiptTransferInterface,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    StorageError,
)

__all__ = [
    # API services
    "ApiError",
    "ExpenseApiInterface",
    "HttpExpenseApiClient",
    "HttpReceiptTransfer",
    "ReceiptTransferInterface",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "StorageError",
]
