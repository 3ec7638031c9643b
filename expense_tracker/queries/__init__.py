"""Expense list query package."""

from expense_tracker.queries.expense_query import ExpenseListQuery, fetch_error_message

__all__ = ["ExpenseListQuery", "fetch_error_message"]
