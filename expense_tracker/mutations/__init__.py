"""Optimistic mutation package."""

from expense_tracker.mutations.engine import (
    ADD_FALLBACK_MESSAGE,
    DELETE_FALLBACK_MESSAGE,
    OptimisticMutationEngine,
)

__all__ = [
    "ADD_FALLBACK_MESSAGE",
    "DELETE_FALLBACK_MESSAGE",
    "OptimisticMutationEngine",
]
