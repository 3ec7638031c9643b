"""
Expense Cache

An in-memory, keyed store of what the user currently sees.

DESIGN DECISION: The cache is an owned object, passed to whoever needs it.
There is no module-level singleton. Only two parties write to it:
1. The optimistic mutation engine (overlays and rollbacks)
2. The list query (authoritative refreshes)

RACE PROTECTION: Every authoritative fetch is registered with a sequence
number before it starts. cancel_pending() invalidates every fetch that is
in flight at that moment, so a slow response can never overwrite an
optimistic overlay applied after the fetch began. A fetch older than the
last one applied is dropped as well. Ordering follows logical intent,
not arrival order.

This module does no I/O.
"""

import time
from typing import Callable, NamedTuple, Optional

from expense_tracker.models.expense import ExpenseCollection


DEFAULT_COLLECTION_KEY = "expenses"


class FetchToken(NamedTuple):
    """Handle for one in-flight authoritative fetch."""
    key: str
    sequence: int


class _CacheEntry:
    __slots__ = (
        "data",
        "updated_at",
        "error",
        "in_flight",
        "min_valid_sequence",
        "last_applied_sequence",
    )

    def __init__(self):
        self.data: Optional[ExpenseCollection] = None
        self.updated_at: Optional[float] = None
        self.error: Optional[Exception] = None
        self.in_flight: set[int] = set()
        self.min_valid_sequence = 0
        self.last_applied_sequence = -1


class ExpenseCache:
    """
    Keyed store of expense collection views.

    A view may be authoritative (straight from the server) or synthetic
    (an optimistic overlay). Readers cannot tell the difference and do
    not need to.
    """

    def __init__(
        self,
        stale_time_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: dict[str, _CacheEntry] = {}
        self._stale_time = stale_time_seconds
        self._clock = clock
        self._next_sequence = 0

    def _entry(self, key: str) -> _CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _CacheEntry()
            self._entries[key] = entry
        return entry

    # -------------------------------------------------------------------------
    # Core contract
    # -------------------------------------------------------------------------

    def read(self, key: str = DEFAULT_COLLECTION_KEY) -> Optional[ExpenseCollection]:
        """Current view for key, synthetic or authoritative, or None."""
        entry = self._entries.get(key)
        return entry.data if entry else None

    def replace(
        self,
        key: str,
        collection: Optional[ExpenseCollection],
    ) -> None:
        """
        Atomically replace the whole view.

        Passing None restores the "never loaded" state, which is what a
        rollback needs when the snapshot was taken before any load.
        """
        entry = self._entry(key)
        entry.data = collection
        entry.updated_at = self._clock() if collection is not None else None

    def cancel_pending(self, key: str = DEFAULT_COLLECTION_KEY) -> int:
        """
        Invalidate every authoritative fetch in flight for key.

        Their results will be discarded when they resolve.

        Returns:
            Number of fetches cancelled
        """
        entry = self._entry(key)
        cancelled = len(entry.in_flight)
        entry.in_flight.clear()
        entry.min_valid_sequence = self._next_sequence
        return cancelled

    # -------------------------------------------------------------------------
    # Fetch bookkeeping
    # -------------------------------------------------------------------------

    def begin_fetch(self, key: str = DEFAULT_COLLECTION_KEY) -> FetchToken:
        """Register an authoritative fetch that is about to start."""
        entry = self._entry(key)
        token = FetchToken(key=key, sequence=self._next_sequence)
        self._next_sequence += 1
        entry.in_flight.add(token.sequence)
        return token

    def _is_current(self, entry: _CacheEntry, token: FetchToken) -> bool:
        return (
            token.sequence >= entry.min_valid_sequence
            and token.sequence > entry.last_applied_sequence
        )

    def resolve_fetch(self, token: FetchToken, collection: ExpenseCollection) -> bool:
        """
        Apply a fetch result if the fetch is still current.

        Returns:
            True if the view was replaced, False if the result was discarded
        """
        entry = self._entry(token.key)
        entry.in_flight.discard(token.sequence)
        if not self._is_current(entry, token):
            return False
        entry.last_applied_sequence = token.sequence
        entry.error = None
        self.replace(token.key, collection)
        return True

    def fail_fetch(self, token: FetchToken, error: Exception) -> bool:
        """
        Record a failed fetch. The view itself is left untouched.

        Returns:
            True if the error was recorded, False if the fetch was stale
        """
        entry = self._entry(token.key)
        entry.in_flight.discard(token.sequence)
        if not self._is_current(entry, token):
            return False
        entry.error = error
        return True

    def is_fetching(self, key: str = DEFAULT_COLLECTION_KEY) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.in_flight)

    def is_stale(self, key: str = DEFAULT_COLLECTION_KEY) -> bool:
        """True if the view is missing, invalidated or older than the stale time."""
        entry = self._entries.get(key)
        if entry is None or entry.data is None or entry.updated_at is None:
            return True
        return self._clock() - entry.updated_at >= self._stale_time

    def invalidate(self, key: str = DEFAULT_COLLECTION_KEY) -> None:
        """Mark the view stale so the next load refetches it."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.updated_at = None

    def last_error(self, key: str = DEFAULT_COLLECTION_KEY) -> Optional[Exception]:
        entry = self._entries.get(key)
        return entry.error if entry else None
