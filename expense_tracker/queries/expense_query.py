"""
Expense List Query

Reads the authoritative expense list and reconciles it into the cache.

GUARANTEES:
- A failed read never touches the view (the last good view stays visible)
- A read that was cancelled while in flight is discarded on arrival
- Re-reading without intervening mutations leaves the view unchanged
"""

from typing import Optional
from uuid import UUID

from expense_tracker.audit import AuditLogger
from expense_tracker.cache import DEFAULT_COLLECTION_KEY, ExpenseCache
from expense_tracker.errors import FetchError
from expense_tracker.models.expense import ExpenseCollection
from expense_tracker.services.api import ApiError, ExpenseApiInterface


def fetch_error_message(error: ApiError) -> str:
    """User-facing message for a failed list read."""
    if error.is_transport_error:
        return str(error)
    return f"HTTP {error.status_code}: {error.body_or(error.reason)}"


class ExpenseListQuery:
    """Fetches the expense list into the cache."""

    def __init__(
        self,
        api: ExpenseApiInterface,
        cache: ExpenseCache,
        audit_logger: Optional[AuditLogger] = None,
        collection_key: str = DEFAULT_COLLECTION_KEY,
    ):
        self._api = api
        self._cache = cache
        self._audit_logger = audit_logger
        self._key = collection_key

    @property
    def collection_key(self) -> str:
        return self._key

    async def load(self, correlation_id: Optional[UUID] = None) -> ExpenseCollection:
        """
        Return the cached view while it is fresh, otherwise refresh.

        Raises:
            FetchError: If a refresh was needed and failed
        """
        cached = self._cache.read(self._key)
        if cached is not None and not self._cache.is_stale(self._key):
            return cached
        return await self.refresh(correlation_id)

    async def refresh(self, correlation_id: Optional[UUID] = None) -> ExpenseCollection:
        """
        Fetch the authoritative list and reconcile it into the cache.

        Returns:
            The current view after reconciliation. If this fetch was
            cancelled while in flight, that is whatever superseded it.

        Raises:
            FetchError: If the read failed
        """
        token = self._cache.begin_fetch(self._key)
        try:
            collection = await self._api.list_expenses()
        except ApiError as e:
            error = FetchError(fetch_error_message(e), status_code=e.status_code)
            recorded = self._cache.fail_fetch(token, error)
            if self._audit_logger:
                if e.is_transport_error:
                    await self._audit_logger.log_external_service_error(
                        service="expense_api",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                if recorded:
                    await self._audit_logger.log_fetch_failed(
                        collection_key=self._key,
                        error_message=str(error),
                        correlation_id=correlation_id,
                    )
            raise error from e

        applied = self._cache.resolve_fetch(token, collection)
        if self._audit_logger:
            if applied:
                await self._audit_logger.log_expenses_fetched(
                    collection_key=self._key,
                    count=len(collection),
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_fetch_discarded(
                    collection_key=self._key,
                    correlation_id=correlation_id,
                )

        current = self._cache.read(self._key)
        return current if current is not None else collection
