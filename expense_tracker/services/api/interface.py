"""
Abstract External Interfaces

DESIGN DECISION: The mutation engine and the upload coordinator talk to
the outside world only through these interfaces. This allows us to:
1. Test every failure path with in-memory fakes
2. Swap the HTTP client without touching the protocol logic
3. Keep the expense API and object storage clearly separate
   (storage never sees the API session cookie)

Implementations raise ApiError for every failure: transport problems,
non-success statuses and malformed bodies alike. Callers translate it
into the phase-specific error the user sees.
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.expense import Expense, ExpenseCollection, NewExpense
from expense_tracker.models.upload import SignedUpload


class ApiError(Exception):
    """
    A call to the expense API or object storage failed.

    status_code is None for transport failures (no response at all).
    body holds the response text, which the API uses for error messages.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        reason: str = "",
    ):
        self.status_code = status_code
        self.body = body
        self.reason = reason
        super().__init__(message)

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None

    def body_or(self, fallback: str) -> str:
        """The server's text if it sent any, otherwise the fallback."""
        return self.body.strip() or fallback


class ExpenseApiInterface(ABC):
    """
    The expense HTTP API.

    All calls are associated with the user's session.
    """

    @abstractmethod
    async def list_expenses(self) -> ExpenseCollection:
        """
        GET /api/expenses

        The only call that may be retried (it is an idempotent read).

        Raises:
            ApiError: If the read fails after any retry
        """
        pass

    @abstractmethod
    async def create_expense(self, new_expense: NewExpense) -> Expense:
        """
        POST /api/expenses

        Returns:
            The server's record, including its assigned id

        Raises:
            ApiError: On any failure (never retried)
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int) -> int:
        """
        DELETE /api/expenses/{id}

        Returns:
            The deleted id

        Raises:
            ApiError: On any failure (never retried)
        """
        pass

    @abstractmethod
    async def attach_file(self, expense_id: int, file_key: str) -> None:
        """
        PATCH /api/expenses/{id} with {"fileKey": ...}

        Raises:
            ApiError: On any failure (never retried)
        """
        pass

    @abstractmethod
    async def sign_upload(self, filename: str, content_type: str) -> SignedUpload:
        """
        POST /api/upload/sign

        Returns the descriptor as received. Completeness is checked
        by the caller, not here.

        Raises:
            ApiError: On transport failure, non-success status or
                      a body that is not a JSON object
        """
        pass


class ReceiptTransferInterface(ABC):
    """Direct client-to-storage transfer of receipt bytes."""

    @abstractmethod
    async def put_object(
        self,
        upload_url: str,
        content: bytes,
        content_type: str,
    ) -> int:
        """
        PUT the bytes to a signed destination.

        Returns:
            The (successful) status code

        Raises:
            ApiError: On transport failure or a non-success status
        """
        pass
