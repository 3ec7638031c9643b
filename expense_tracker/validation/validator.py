"""
Expense Input Validation

Checks what the user typed before anything reaches the network.

IMPORTANT: Validation NEVER silently fixes input beyond trimming the title.
A bad amount is reported, not rounded or clamped.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Optional

from expense_tracker.config import UploadSettings, get_settings
from expense_tracker.errors import ValidationError
from expense_tracker.models.expense import NewExpense, ValidationIssue, ValidationResult
from expense_tracker.models.upload import ReceiptFile


TITLE_REQUIRED = "Title is required"
AMOUNT_MUST_BE_POSITIVE = "Amount must be greater than 0"
FILE_REQUIRED = "Please select a file."


def _parse_amount(amount_text: str) -> Optional[Decimal]:
    try:
        amount = Decimal(amount_text.strip())
    except (InvalidOperation, AttributeError):
        return None
    if not amount.is_finite():
        return None
    # Sent as a JSON number, so it must also be finite as a float
    if not math.isfinite(float(amount)):
        return None
    return amount


class ExpenseInputValidator:
    """Validates add-expense and upload form submissions."""

    def __init__(self, upload_settings: Optional[UploadSettings] = None):
        self._upload_settings = upload_settings or get_settings().upload

    def validate(self, title: str, amount_text: str) -> ValidationResult:
        """
        Validate an add-expense submission.

        Returns:
            A result whose `expense` holds the parsed payload when valid
        """
        issues = []

        trimmed = (title or "").strip()
        if not trimmed:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message=TITLE_REQUIRED,
            ))
        elif len(trimmed) > 200:
            issues.append(ValidationIssue(
                field="title",
                issue_type="too_long",
                message="Title must be at most 200 characters",
            ))

        amount = _parse_amount(amount_text or "")
        # float() so an amount that underflows to 0.0 on the wire is rejected
        if amount is None or float(amount) <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=AMOUNT_MUST_BE_POSITIVE,
            ))

        result = ValidationResult(issues=issues)
        if result.is_valid:
            result.expense = NewExpense(title=trimmed, amount=amount)
        return result

    def parse(self, title: str, amount_text: str) -> NewExpense:
        """
        Validate and return the payload.

        Raises:
            ValidationError: With the first error message and all issues
        """
        result = self.validate(title, amount_text)
        if not result.is_valid:
            raise ValidationError(result.first_error, result.issues)
        return result.expense

    def check_receipt(self, file: Optional[ReceiptFile]) -> ReceiptFile:
        """
        Make sure a receipt was picked and is within the size limit.

        Raises:
            ValidationError: If no file was selected or it is too large
        """
        if file is None:
            raise ValidationError(FILE_REQUIRED, [ValidationIssue(
                field="file",
                issue_type="missing",
                message=FILE_REQUIRED,
            )])
        limit = self._upload_settings.max_upload_size_bytes
        if file.size_bytes > limit:
            message = (
                f"File is too large ({file.size_bytes} bytes); "
                f"the limit is {self._upload_settings.max_upload_size_mb} MB"
            )
            raise ValidationError(message, [ValidationIssue(
                field="file",
                issue_type="too_large",
                message=message,
            )])
        return file
