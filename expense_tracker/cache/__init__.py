"""Expense cache package."""

from expense_tracker.cache.expense_cache import (
    DEFAULT_COLLECTION_KEY,
    ExpenseCache,
    FetchToken,
)

__all__ = ["DEFAULT_COLLECTION_KEY", "ExpenseCache", "FetchToken"]
