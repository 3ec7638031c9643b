"""
Tests for the expense cache and the list query.
"""

import pytest

from expense_tracker.cache import ExpenseCache
from expense_tracker.errors import FetchError
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.expense import ExpenseCollection
from expense_tracker.queries.expense_query import fetch_error_message
from expense_tracker.services.api import ApiError
from tests.fakes import make_expense


KEY = "expenses"


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _view(*ids: int) -> ExpenseCollection:
    return ExpenseCollection(expenses=tuple(make_expense(i, f"E{i}", "1.00") for i in ids))


class TestExpenseCache:
    """Tests for the keyed view store."""

    def test_read_unknown_key_is_none(self):
        cache = ExpenseCache()
        assert cache.read(KEY) is None
        assert cache.is_stale(KEY) is True

    def test_replace_and_read(self):
        cache = ExpenseCache()
        view = _view(1, 2)
        cache.replace(KEY, view)
        assert cache.read(KEY) is view

    def test_replace_with_none_restores_never_loaded(self):
        cache = ExpenseCache()
        cache.replace(KEY, _view(1))
        cache.replace(KEY, None)
        assert cache.read(KEY) is None
        assert cache.is_stale(KEY) is True

    def test_staleness_follows_clock(self):
        """Test that a view goes stale after the stale time."""
        clock = FakeClock()
        cache = ExpenseCache(stale_time_seconds=5.0, clock=clock)
        cache.replace(KEY, _view(1))
        assert cache.is_stale(KEY) is False
        clock.now += 5.0
        assert cache.is_stale(KEY) is True

    def test_invalidate_keeps_view(self):
        """Test that invalidation marks stale without dropping the data."""
        cache = ExpenseCache()
        cache.replace(KEY, _view(1))
        cache.invalidate(KEY)
        assert cache.is_stale(KEY) is True
        assert cache.read(KEY).ids == [1]

    def test_fetch_resolves_into_view(self):
        cache = ExpenseCache()
        token = cache.begin_fetch(KEY)
        assert cache.is_fetching(KEY) is True
        assert cache.resolve_fetch(token, _view(1, 2)) is True
        assert cache.is_fetching(KEY) is False
        assert cache.read(KEY).ids == [1, 2]

    def test_cancelled_fetch_is_discarded(self):
        """Test that a fetch in flight during cancel_pending cannot overwrite the view."""
        cache = ExpenseCache()
        cache.replace(KEY, _view(1, 2, 3))
        token = cache.begin_fetch(KEY)

        assert cache.cancel_pending(KEY) == 1
        cache.replace(KEY, _view(1, 3))

        assert cache.resolve_fetch(token, _view(1, 2, 3)) is False
        assert cache.read(KEY).ids == [1, 3]

    def test_fetch_started_after_cancel_applies(self):
        cache = ExpenseCache()
        cache.cancel_pending(KEY)
        token = cache.begin_fetch(KEY)
        assert cache.resolve_fetch(token, _view(4)) is True

    def test_older_fetch_arriving_late_is_discarded(self):
        """Test ordering by start, not by arrival."""
        cache = ExpenseCache()
        first = cache.begin_fetch(KEY)
        second = cache.begin_fetch(KEY)

        assert cache.resolve_fetch(second, _view(1, 2)) is True
        assert cache.resolve_fetch(first, _view(1)) is False
        assert cache.read(KEY).ids == [1, 2]

    def test_failed_fetch_leaves_view(self):
        cache = ExpenseCache()
        cache.replace(KEY, _view(1))
        token = cache.begin_fetch(KEY)
        error = FetchError("HTTP 500: boom")

        assert cache.fail_fetch(token, error) is True
        assert cache.read(KEY).ids == [1]
        assert cache.last_error(KEY) is error

    def test_successful_fetch_clears_error(self):
        cache = ExpenseCache()
        cache.fail_fetch(cache.begin_fetch(KEY), FetchError("x"))
        cache.resolve_fetch(cache.begin_fetch(KEY), _view(1))
        assert cache.last_error(KEY) is None

    def test_keys_are_independent(self):
        cache = ExpenseCache()
        token = cache.begin_fetch("other")
        cache.cancel_pending(KEY)
        assert cache.resolve_fetch(token, _view(9)) is True
        assert cache.read(KEY) is None


class TestFetchErrorMessage:
    """Tests for the list read error text."""

    def test_status_and_body(self):
        error = ApiError("HTTP 500", status_code=500, body="db down", reason="Internal Server Error")
        assert fetch_error_message(error) == "HTTP 500: db down"

    def test_status_and_reason_without_body(self):
        error = ApiError("HTTP 503", status_code=503, reason="Service Unavailable")
        assert fetch_error_message(error) == "HTTP 503: Service Unavailable"

    def test_transport_error(self):
        assert fetch_error_message(ApiError("connection refused")) == "connection refused"


class TestExpenseListQuery:
    """Tests for reading the list into the cache."""

    @pytest.mark.asyncio
    async def test_refresh_fills_cache(self, query, cache, api):
        view = await query.refresh()
        assert view.ids == [1, 2, 3]
        assert cache.read(KEY) is view
        assert api.calls == ["list"]

    @pytest.mark.asyncio
    async def test_load_uses_fresh_cache(self, query, api):
        await query.load()
        await query.load()
        assert api.calls == ["list"]

    @pytest.mark.asyncio
    async def test_load_refetches_after_invalidate(self, query, cache, api):
        await query.load()
        cache.invalidate(KEY)
        await query.load()
        assert api.calls == ["list", "list"]

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(self, query, cache):
        """Test that re-reading without mutations leaves the view unchanged."""
        first = await query.refresh()
        second = await query.refresh()
        assert first == second
        assert cache.read(KEY).ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_last_good_view(self, query, cache, api, audit_storage):
        await query.refresh()
        api.failures["list"] = ApiError("HTTP 500", status_code=500, body="db down")

        with pytest.raises(FetchError) as exc_info:
            await query.refresh()

        assert str(exc_info.value) == "HTTP 500: db down"
        assert exc_info.value.status_code == 500
        assert cache.read(KEY).ids == [1, 2, 3]
        assert isinstance(cache.last_error(KEY), FetchError)

        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.FETCH_FAILED

    @pytest.mark.asyncio
    async def test_empty_list(self, query, api):
        api.expenses = []
        view = await query.refresh()
        assert len(view) == 0
