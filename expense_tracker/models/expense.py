"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the client.
They are designed to:
1. Enforce the expense invariants at runtime (non-empty title, amount > 0)
2. Parse the API's wire format (camelCase fields) into Python names
3. Be immutable where they are shared, so a snapshot can never change under us
4. Support the audit trail

DESIGN DECISION: Expense and ExpenseCollection are frozen.
The cache hands out the same objects to every reader, and a rollback
restores a snapshot verbatim. Mutation therefore always means building
a new collection, never editing one in place.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class MutationKind(str, Enum):
    """Kinds of optimistic mutation the engine can apply."""
    CREATE = "create"
    DELETE = "delete"
    ATTACH_FILE = "attach_file"


class MutationOutcome(str, Enum):
    """
    Terminal state of a pending mutation.

    CRITICAL: A mutation moves out of PENDING exactly once.
    It is either committed or rolled back, never both.
    """
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class Expense(BaseModel):
    """
    A single expense as the user sees it.

    Server records carry the server-assigned id. Optimistic records
    carry a negative placeholder id until the next refresh replaces them.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: int = Field(
        ...,
        description="Server id, or a negative placeholder for optimistic rows"
    )
    title: str = Field(
        ...,
        min_length=1,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent (always positive)"
    )
    file_url: Optional[str] = Field(
        default=None,
        alias="fileUrl",
        description="Reference to the attached receipt, absent until committed"
    )

    @property
    def is_placeholder(self) -> bool:
        """True for rows that have not been confirmed by the server yet."""
        return self.id < 0

    @property
    def has_receipt(self) -> bool:
        return bool(self.file_url)


class ExpenseCollection(BaseModel):
    """
    The ordered list of expenses the user currently sees.

    Wire shape: {"expenses": [...]}
    """
    model_config = ConfigDict(frozen=True)

    expenses: tuple[Expense, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.expenses)

    @property
    def ids(self) -> list[int]:
        return [expense.id for expense in self.expenses]

    def find(self, expense_id: int) -> Optional[Expense]:
        """Return the expense with this id, if present."""
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        return None

    def with_appended(self, expense: Expense) -> "ExpenseCollection":
        return ExpenseCollection(expenses=self.expenses + (expense,))

    def without(self, expense_id: int) -> "ExpenseCollection":
        return ExpenseCollection(
            expenses=tuple(e for e in self.expenses if e.id != expense_id)
        )

    def with_file_reference(
        self,
        expense_id: int,
        file_reference: str,
    ) -> "ExpenseCollection":
        """Return a copy where one expense points at a new receipt."""
        return ExpenseCollection(
            expenses=tuple(
                e.model_copy(update={"file_url": file_reference})
                if e.id == expense_id else e
                for e in self.expenses
            )
        )


class NewExpense(BaseModel):
    """
    Validated input for creating an expense.

    Only produced by the input validator, so title and amount
    are already known to be acceptable.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)

    def to_payload(self) -> dict:
        """Request body for POST /api/expenses."""
        # The API takes a JSON number
        return {"title": self.title, "amount": float(self.amount)}


class CreatedExpenseResponse(BaseModel):
    """Response body of POST /api/expenses."""

    expense: Expense


# =============================================================================
# MUTATION TRACKING
# =============================================================================

class PendingMutation(BaseModel):
    """
    A tentative change waiting for server confirmation.

    Holds the view as it was before the change, so a failed
    confirmation can put it back exactly.
    """

    mutation_id: UUID = Field(default_factory=uuid4)
    kind: MutationKind
    collection_key: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Target: a payload for creates, an existing id otherwise
    payload: Optional[NewExpense] = None
    target_id: Optional[int] = None
    file_reference: Optional[str] = None
    placeholder_id: Optional[int] = None

    # None when there was no view to overlay
    snapshot_before: Optional[ExpenseCollection] = None

    outcome: MutationOutcome = MutationOutcome.PENDING
    settled_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.outcome != MutationOutcome.PENDING

    def resolve(
        self,
        outcome: MutationOutcome,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Record the terminal outcome.

        Raises:
            RuntimeError: If the mutation was already resolved
        """
        if outcome == MutationOutcome.PENDING:
            raise ValueError("Cannot resolve a mutation back to pending")
        if self.is_settled:
            raise RuntimeError(
                f"Mutation {self.mutation_id} already {self.outcome.value}"
            )
        self.outcome = outcome
        self.error_message = error_message
        self.settled_at = datetime.utcnow()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem with user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )


class ValidationResult(BaseModel):
    """Result of validating an add-expense submission."""

    validated_at: datetime = Field(default_factory=datetime.utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)
    expense: Optional[NewExpense] = Field(
        default=None,
        description="The parsed payload, present only when valid"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None
