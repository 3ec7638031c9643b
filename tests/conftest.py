"""
Shared fixtures for the expense tracker tests.
"""

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.cache import ExpenseCache
from expense_tracker.config import UploadSettings
from expense_tracker.models.expense import Expense
from expense_tracker.mutations import OptimisticMutationEngine
from expense_tracker.queries import ExpenseListQuery
from expense_tracker.services.storage import InMemoryAuditStorage
from expense_tracker.uploads import StagedUploadCoordinator
from expense_tracker.validation import ExpenseInputValidator
from tests.fakes import FakeExpenseApi, FakeTransfer, make_expense


@pytest.fixture
def seed_expenses() -> list[Expense]:
    return [
        make_expense(1, "Rent", "1200.00"),
        make_expense(2, "Groceries", "85.40"),
        make_expense(3, "Internet", "49.99"),
    ]


@pytest.fixture
def api(seed_expenses) -> FakeExpenseApi:
    return FakeExpenseApi(seed_expenses)


@pytest.fixture
def transfer() -> FakeTransfer:
    return FakeTransfer()


@pytest.fixture
def cache() -> ExpenseCache:
    return ExpenseCache(stale_time_seconds=5.0)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def query(api, cache, audit_logger) -> ExpenseListQuery:
    return ExpenseListQuery(api, cache, audit_logger)


@pytest.fixture
def engine(cache, api, query, audit_logger) -> OptimisticMutationEngine:
    return OptimisticMutationEngine(cache, api, query, audit_logger)


@pytest.fixture
def coordinator(api, transfer, audit_logger) -> StagedUploadCoordinator:
    return StagedUploadCoordinator(api, transfer, audit_logger)


@pytest.fixture
def validator() -> ExpenseInputValidator:
    return ExpenseInputValidator(UploadSettings(max_upload_size_mb=1))
