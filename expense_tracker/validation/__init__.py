"""Input validation package."""

from expense_tracker.validation.validator import (
    AMOUNT_MUST_BE_POSITIVE,
    FILE_REQUIRED,
    TITLE_REQUIRED,
    ExpenseInputValidator,
)

__all__ = [
    "AMOUNT_MUST_BE_POSITIVE",
    "FILE_REQUIRED",
    "TITLE_REQUIRED",
    "ExpenseInputValidator",
]
