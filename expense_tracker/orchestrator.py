"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
user-facing flows:
1. Expense list (load -> refresh -> delete with rollback)
2. Add expense (validate -> optimistic create -> reconcile)
3. Receipt upload (select -> sign -> transfer -> commit -> update view)

DESIGN DECISION: The flows hold exactly the state a screen needs
(error strings, "in progress" flags, success messages) and nothing
about rendering. Expected failures are turned into that state and
returned as (result, message) pairs; they are never swallowed, and
every failure path clears its in-progress flag.
"""

from typing import Callable, Optional
from uuid import UUID

from expense_tracker.audit import (
    AuditLogger,
    configure_logging,
    create_correlation_id,
)
from expense_tracker.cache import ExpenseCache
from expense_tracker.config import Settings, get_settings
from expense_tracker.errors import (
    CommitError,
    ConfirmError,
    FetchError,
    UploadError,
    ValidationError,
)
from expense_tracker.models.expense import Expense
from expense_tracker.models.upload import ReceiptFile, UploadSession
from expense_tracker.mutations import OptimisticMutationEngine
from expense_tracker.queries import ExpenseListQuery
from expense_tracker.services.api import (
    ExpenseApiInterface,
    HttpExpenseApiClient,
    HttpReceiptTransfer,
    ReceiptTransferInterface,
)
from expense_tracker.services.storage import InMemoryAuditStorage
from expense_tracker.uploads import StagedUploadCoordinator
from expense_tracker.validation import ExpenseInputValidator


UPLOAD_SUCCESS_MESSAGE = "File uploaded and expense updated."


class ExpenseListFlow:
    """
    The expense list screen.

    Shows the cached view, refreshes it on demand and deletes rows
    optimistically. Every row with a delete in flight shows "Removing...".
    """

    def __init__(
        self,
        query: ExpenseListQuery,
        engine: OptimisticMutationEngine,
        cache: ExpenseCache,
    ):
        self._query = query
        self._engine = engine
        self._cache = cache
        self.error: Optional[str] = None
        self.deleting_ids: set[int] = set()
        self.delete_error: Optional[str] = None

    @property
    def items(self) -> list[Expense]:
        view = self._cache.read(self._query.collection_key)
        return list(view.expenses) if view is not None else []

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_loading(self) -> bool:
        """First load still running, nothing to show yet."""
        return (
            self._cache.read(self._query.collection_key) is None
            and self._cache.is_fetching(self._query.collection_key)
        )

    @property
    def is_fetching(self) -> bool:
        return self._cache.is_fetching(self._query.collection_key)

    def is_row_deleting(self, expense_id: int) -> bool:
        return (
            expense_id in self.deleting_ids
            and expense_id in self._engine.in_progress_ids
        )

    async def load(
        self,
        force: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[list[Expense], bool, str]:
        """
        Show the list, fetching it if needed.

        Returns:
            (items, ok, message) - on failure items is the last good view
        """
        try:
            if force:
                await self._query.refresh(correlation_id)
            else:
                await self._query.load(correlation_id)
        except FetchError as e:
            self.error = str(e)
            return self.items, False, self.error
        self.error = None
        return self.items, True, ""

    async def refresh(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[list[Expense], bool, str]:
        """The Refresh / Retry button."""
        return await self.load(force=True, correlation_id=correlation_id)

    async def delete(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[bool, str]:
        """
        Delete a row optimistically.

        Returns:
            (ok, message) - on failure the row is back in place
        """
        correlation_id = correlation_id or create_correlation_id()
        self.delete_error = None
        self.deleting_ids.add(expense_id)
        try:
            await self._engine.delete(expense_id, correlation_id)
        except ConfirmError as e:
            self.delete_error = str(e)
            return False, self.delete_error
        finally:
            self.deleting_ids.discard(expense_id)
        return True, ""


class AddExpenseFlow:
    """
    The add-expense form.

    Fill in `title` and `amount_text`, then call submit().
    """

    def __init__(
        self,
        engine: OptimisticMutationEngine,
        validator: ExpenseInputValidator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._engine = engine
        self._validator = validator
        self._audit_logger = audit_logger
        self.title = ""
        self.amount_text = ""
        self.form_error: Optional[str] = None
        self.mutation_error: Optional[str] = None
        self._submitting = False

    @property
    def is_pending(self) -> bool:
        return self._submitting

    async def submit(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Expense], str]:
        """
        Validate the form and create the expense.

        Validation failures never reach the network. On success the
        form fields are cleared.

        Returns:
            (expense, message) - expense is None on any failure
        """
        correlation_id = correlation_id or create_correlation_id()
        self.form_error = None
        self.mutation_error = None

        try:
            new_expense = self._validator.parse(self.title, self.amount_text)
        except ValidationError as e:
            self.form_error = str(e)
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in e.issues
                    ],
                    correlation_id=correlation_id,
                )
            return None, self.form_error

        self._submitting = True
        try:
            expense = await self._engine.create(new_expense, correlation_id)
        except ConfirmError as e:
            self.mutation_error = str(e)
            return None, self.mutation_error
        finally:
            self._submitting = False

        self.title = ""
        self.amount_text = ""
        return expense, ""


class ReceiptUploadFlow:
    """
    The receipt upload form for one expense.

    A session exists only while submit() runs; afterwards the form is
    ready for a new file.
    """

    def __init__(
        self,
        expense_id: int,
        coordinator: StagedUploadCoordinator,
        engine: OptimisticMutationEngine,
        validator: ExpenseInputValidator,
        on_uploaded: Optional[Callable[[str], None]] = None,
    ):
        self.expense_id = expense_id
        self._coordinator = coordinator
        self._engine = engine
        self._validator = validator
        self._on_uploaded = on_uploaded
        self.file: Optional[ReceiptFile] = None
        self.session: Optional[UploadSession] = None
        self.error: Optional[str] = None
        self.success: Optional[str] = None
        self.orphaned_key: Optional[str] = None
        self.loading = False

    def select_file(self, file: Optional[ReceiptFile]) -> None:
        self.error = None
        self.success = None
        self.file = file

    def reset(self) -> None:
        """Discard the selection and any finished session."""
        self.file = None
        self.session = None
        self.error = None
        self.success = None
        self.orphaned_key = None

    async def submit(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[bool, str]:
        """
        Run the whole upload for the selected file.

        Returns:
            (ok, message) - message names the failing phase on error
        """
        correlation_id = correlation_id or create_correlation_id()
        self.error = None
        self.success = None
        self.orphaned_key = None

        try:
            file = self._validator.check_receipt(self.file)
        except ValidationError as e:
            self.error = str(e)
            return False, self.error

        self.loading = True
        try:
            self.session = await self._coordinator.start(
                self.expense_id, file, correlation_id
            )
            key = await self._coordinator.run(self.session, correlation_id)
        except UploadError as e:
            self.error = str(e)
            if isinstance(e, CommitError):
                self.orphaned_key = e.storage_key
            return False, self.error
        finally:
            self.loading = False
            self.session = None

        await self._engine.apply_file_reference(self.expense_id, key, correlation_id)
        self.success = UPLOAD_SUCCESS_MESSAGE
        self.file = None
        if self._on_uploaded:
            self._on_uploaded(key)
        return True, self.success


class ExpenseTrackerApp:
    """All components of one client, wired together."""

    def __init__(
        self,
        cache: ExpenseCache,
        api: ExpenseApiInterface,
        transfer: ReceiptTransferInterface,
        audit_logger: AuditLogger,
        validator: ExpenseInputValidator,
    ):
        self.cache = cache
        self.api = api
        self.transfer = transfer
        self.audit_logger = audit_logger
        self.validator = validator
        self.query = ExpenseListQuery(api, cache, audit_logger)
        self.engine = OptimisticMutationEngine(cache, api, self.query, audit_logger)
        self.coordinator = StagedUploadCoordinator(api, transfer, audit_logger)

    def list_flow(self) -> ExpenseListFlow:
        return ExpenseListFlow(self.query, self.engine, self.cache)

    def add_flow(self) -> AddExpenseFlow:
        return AddExpenseFlow(self.engine, self.validator, self.audit_logger)

    def upload_flow(
        self,
        expense_id: int,
        on_uploaded: Optional[Callable[[str], None]] = None,
    ) -> ReceiptUploadFlow:
        return ReceiptUploadFlow(
            expense_id,
            self.coordinator,
            self.engine,
            self.validator,
            on_uploaded,
        )

    async def aclose(self) -> None:
        """Close HTTP clients that were created by the factory."""
        for client in (self.api, self.transfer):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()


def create_app_components(
    settings: Optional[Settings] = None,
    api: Optional[ExpenseApiInterface] = None,
    transfer: Optional[ReceiptTransferInterface] = None,
) -> ExpenseTrackerApp:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        api: Expense API implementation (defaults to the HTTP client)
        transfer: Storage transfer implementation (defaults to the HTTP client)

    Returns:
        The wired application
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    cache_settings = settings.cache
    api_settings = settings.api

    cache = ExpenseCache(stale_time_seconds=cache_settings.stale_time_seconds)
    api = api or HttpExpenseApiClient(api_settings, cache_settings)
    transfer = transfer or HttpReceiptTransfer(api_settings)
    audit_logger = AuditLogger(InMemoryAuditStorage())
    validator = ExpenseInputValidator(settings.upload)

    return ExpenseTrackerApp(cache, api, transfer, audit_logger, validator)
