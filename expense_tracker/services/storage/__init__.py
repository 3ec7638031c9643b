"""
Storage Services Package

Provides the audit storage interface and its in-memory implementation.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
)
from expense_tracker.services.storage.memory import InMemoryAuditStorage

__all__ = [
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "StorageError",
]
