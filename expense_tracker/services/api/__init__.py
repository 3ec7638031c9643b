"""
External API Package

Abstract interfaces for the expense API and object storage, and their
httpx-based implementations.
"""

from expense_tracker.services.api.interface import (
    ApiError,
    ExpenseApiInterface,
    ReceiptTransferInterface,
)
from expense_tracker.services.api.client import (
    HttpExpenseApiClient,
    HttpReceiptTransfer,
)

__all__ = [
    # Interfaces
    "ExpenseApiInterface",
    "ReceiptTransferInterface",
    # Exceptions
    "ApiError",
    # HTTP implementation
    "HttpExpenseApiClient",
    "HttpReceiptTransfer",
]
