"""
Optimistic Mutation Engine

Applies a change to the expense cache the moment the user asks for it,
then reconciles with what the server says.

PROTOCOL (per mutation, strictly sequential):
1. Cancel   - invalidate in-flight refreshes so they cannot erase the overlay
2. Snapshot - remember the view as it was
3. Apply    - overlay the tentative change
4. Confirm  - issue the real call (never retried)
              success -> COMMITTED, overlay left as is
              failure -> ROLLED_BACK, snapshot restored verbatim, ConfirmError
5. Settle   - clear the row's in-progress flag and refresh from the server

DESIGN DECISION: Placeholder ids are negative (-1, -2, ...).
Server ids are positive, so a placeholder can never collide with a real
record, no matter what the clock does.

Overlapping mutations are NOT merged. Each one rolls back to its own
snapshot; the last replace wins and the settle refresh is the authority
that resolves any divergence.
"""

import itertools
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.cache import ExpenseCache
from expense_tracker.errors import ConfirmError, FetchError
from expense_tracker.models.expense import (
    Expense,
    ExpenseCollection,
    MutationKind,
    MutationOutcome,
    NewExpense,
    PendingMutation,
)
from expense_tracker.queries import ExpenseListQuery
from expense_tracker.services.api import ApiError, ExpenseApiInterface


logger = structlog.get_logger(__name__)

ADD_FALLBACK_MESSAGE = "Failed to add expense"
DELETE_FALLBACK_MESSAGE = "Failed to delete expense"


class OptimisticMutationEngine:
    """
    Apply/rollback sequencer for expense mutations.

    The engine and the list query are the only writers of the cache.
    """

    def __init__(
        self,
        cache: ExpenseCache,
        api: ExpenseApiInterface,
        query: ExpenseListQuery,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._cache = cache
        self._api = api
        self._query = query
        self._audit_logger = audit_logger
        self._key = query.collection_key
        self._placeholder_ids = itertools.count(-1, -1)
        self._pending: dict[UUID, PendingMutation] = {}
        self._in_progress: set[int] = set()

    @property
    def pending_mutations(self) -> list[PendingMutation]:
        return list(self._pending.values())

    @property
    def is_pending(self) -> bool:
        return bool(self._pending)

    @property
    def in_progress_ids(self) -> frozenset[int]:
        """Ids of rows with a delete or attach still waiting to settle."""
        return frozenset(self._in_progress)

    def next_placeholder_id(self) -> int:
        return next(self._placeholder_ids)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def create(
        self,
        new_expense: NewExpense,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Add an expense optimistically.

        A synthetic row with a placeholder id is appended right away
        (only if a view is loaded). The settle refresh swaps it for
        the server's record.

        Returns:
            The server-confirmed expense

        Raises:
            ConfirmError: If the server rejected the create (view rolled back)
        """
        placeholder = Expense(
            id=self.next_placeholder_id(),
            title=new_expense.title,
            amount=new_expense.amount,
            file_url=None,
        )
        mutation = PendingMutation(
            kind=MutationKind.CREATE,
            collection_key=self._key,
            payload=new_expense,
            placeholder_id=placeholder.id,
        )
        return await self._run(
            mutation,
            apply=lambda view: view.with_appended(placeholder),
            confirm=lambda: self._api.create_expense(new_expense),
            fallback_message=ADD_FALLBACK_MESSAGE,
            correlation_id=correlation_id,
        )

    async def delete(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Remove an expense optimistically.

        The row disappears right away and is marked in progress
        until the mutation settles.

        Raises:
            ConfirmError: If the server rejected the delete
                          (the row reappears in its original position)
        """
        mutation = PendingMutation(
            kind=MutationKind.DELETE,
            collection_key=self._key,
            target_id=expense_id,
        )
        return await self._run(
            mutation,
            apply=lambda view: view.without(expense_id),
            confirm=lambda: self._api.delete_expense(expense_id),
            fallback_message=DELETE_FALLBACK_MESSAGE,
            correlation_id=correlation_id,
        )

    async def apply_file_reference(
        self,
        expense_id: int,
        file_reference: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Point one expense at a committed receipt.

        The server already holds the reference (the upload commit
        phase wrote it), so there is nothing to confirm; the change
        still goes through cancel/snapshot/apply/settle so a stale
        refresh cannot erase it.
        """
        mutation = PendingMutation(
            kind=MutationKind.ATTACH_FILE,
            collection_key=self._key,
            target_id=expense_id,
            file_reference=file_reference,
        )
        await self._run(
            mutation,
            apply=lambda view: view.with_file_reference(expense_id, file_reference),
            confirm=None,
            fallback_message="",
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Protocol
    # -------------------------------------------------------------------------

    async def _run(
        self,
        mutation: PendingMutation,
        apply: Callable[[ExpenseCollection], ExpenseCollection],
        confirm: Optional[Callable[[], Awaitable]],
        fallback_message: str,
        correlation_id: Optional[UUID],
    ):
        # 1. Cancel
        self._cache.cancel_pending(self._key)

        # 2. Snapshot
        before = self._cache.read(self._key)
        mutation.snapshot_before = before

        # 3. Apply
        if before is not None:
            self._cache.replace(self._key, apply(before))
        self._pending[mutation.mutation_id] = mutation
        if mutation.target_id is not None:
            self._in_progress.add(mutation.target_id)

        target = mutation.target_id if mutation.target_id is not None else mutation.placeholder_id
        if self._audit_logger:
            await self._audit_logger.log_mutation_applied(
                mutation_id=mutation.mutation_id,
                kind=mutation.kind.value,
                target=target,
                correlation_id=correlation_id,
            )

        try:
            # 4. Confirm
            try:
                result = await confirm() if confirm is not None else None
            except ApiError as e:
                message = e.body_or(fallback_message)
                self._rollback(mutation)
                mutation.resolve(MutationOutcome.ROLLED_BACK, message)
                if self._audit_logger:
                    await self._audit_logger.log_mutation_rolled_back(
                        mutation_id=mutation.mutation_id,
                        kind=mutation.kind.value,
                        target=target,
                        error_message=message,
                        correlation_id=correlation_id,
                    )
                raise ConfirmError(message, status_code=e.status_code) from e

            mutation.resolve(MutationOutcome.COMMITTED)
            if self._audit_logger:
                await self._audit_logger.log_mutation_committed(
                    mutation_id=mutation.mutation_id,
                    kind=mutation.kind.value,
                    target=target,
                    correlation_id=correlation_id,
                )
            return result
        finally:
            # 5. Settle
            self._pending.pop(mutation.mutation_id, None)
            if mutation.target_id is not None:
                self._in_progress.discard(mutation.target_id)
            await self._settle_refresh(correlation_id)

    def _rollback(self, mutation: PendingMutation) -> None:
        # Nothing was overlaid when there was no view
        if mutation.snapshot_before is not None:
            self._cache.replace(self._key, mutation.snapshot_before)

    async def _settle_refresh(self, correlation_id: Optional[UUID]) -> None:
        self._cache.invalidate(self._key)
        try:
            await self._query.refresh(correlation_id)
        except FetchError as e:
            # Recorded on the cache by the query; the mutation outcome stands
            logger.warning("settle_refresh_failed", error=str(e))
