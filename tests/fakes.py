"""
In-memory fakes for the expense API and object storage.

No test talks to a real server.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from expense_tracker.models.expense import Expense, ExpenseCollection, NewExpense
from expense_tracker.models.upload import SignedUpload
from expense_tracker.services.api import (
    ApiError,
    ExpenseApiInterface,
    ReceiptTransferInterface,
)


class FakeExpenseApi(ExpenseApiInterface):
    """
    Server stand-in.

    - failures[op]: raised on every call to op until removed
    - gates[op]: the call waits for the event before answering
    - calls: every operation name, in order
    """

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self.expenses: list[Expense] = list(expenses or [])
        self.next_id = max((e.id for e in self.expenses), default=0) + 1
        self.calls: list[str] = []
        self.failures: dict[str, ApiError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.sign_response: Optional[SignedUpload] = None
        self.sign_requests: list[tuple[str, str]] = []
        self.attached: list[tuple[int, str]] = []

    async def _enter(self, op: str) -> None:
        self.calls.append(op)
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        error = self.failures.get(op)
        if error is not None:
            raise error

    async def list_expenses(self) -> ExpenseCollection:
        # The server reads before the (possibly delayed) response goes out
        snapshot = tuple(self.expenses)
        await self._enter("list")
        return ExpenseCollection(expenses=snapshot)

    async def create_expense(self, new_expense: NewExpense) -> Expense:
        await self._enter("create")
        expense = Expense(
            id=self.next_id,
            title=new_expense.title,
            amount=new_expense.amount,
        )
        self.next_id += 1
        self.expenses.append(expense)
        return expense

    async def delete_expense(self, expense_id: int) -> int:
        await self._enter("delete")
        if not any(e.id == expense_id for e in self.expenses):
            raise ApiError("HTTP 404", status_code=404, body="Expense not found")
        self.expenses = [e for e in self.expenses if e.id != expense_id]
        return expense_id

    async def attach_file(self, expense_id: int, file_key: str) -> None:
        await self._enter("attach")
        self.attached.append((expense_id, file_key))
        self.expenses = [
            e.model_copy(update={"file_url": file_key}) if e.id == expense_id else e
            for e in self.expenses
        ]

    async def sign_upload(self, filename: str, content_type: str) -> SignedUpload:
        await self._enter("sign")
        self.sign_requests.append((filename, content_type))
        if self.sign_response is not None:
            return self.sign_response
        return SignedUpload(
            upload_url=f"https://storage.test/upload/{filename}?sig=abc",
            key=f"receipts/{filename}",
        )


class FakeTransfer(ReceiptTransferInterface):
    """Object storage stand-in answering with a configurable status."""

    def __init__(self, status: int = 200, body: str = ""):
        self.status = status
        self.body = body
        self.error: Optional[ApiError] = None
        self.puts: list[tuple[str, bytes, str]] = []

    async def put_object(self, upload_url: str, content: bytes, content_type: str) -> int:
        self.puts.append((upload_url, content, content_type))
        if self.error is not None:
            raise self.error
        if not 200 <= self.status < 300:
            raise ApiError(f"HTTP {self.status}", status_code=self.status, body=self.body)
        return self.status


def make_expense(expense_id: int, title: str, amount: str, file_url: Optional[str] = None) -> Expense:
    return Expense(id=expense_id, title=title, amount=Decimal(amount), file_url=file_url)

