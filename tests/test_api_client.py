"""
Tests for the HTTP clients, using httpx's mock transport.
"""

import json

import httpx
import pytest
from decimal import Decimal

from expense_tracker.config import ApiSettings, CacheSettings
from expense_tracker.errors import SignError
from expense_tracker.models.expense import NewExpense
from expense_tracker.models.upload import ReceiptFile, UploadPhase
from expense_tracker.services.api import (
    ApiError,
    HttpExpenseApiClient,
    HttpReceiptTransfer,
)
from expense_tracker.uploads import INVALID_SIGNING_RESPONSE, StagedUploadCoordinator
from tests.fakes import FakeTransfer


EXPENSES_BODY = {
    "expenses": [
        {"id": 1, "title": "Rent", "amount": 1200, "fileUrl": "receipts/rent.pdf"},
        {"id": 2, "title": "Groceries", "amount": 85.4},
    ]
}


class Recorder:
    """Mock transport handler answering from a queue of responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(recorder: Recorder) -> HttpExpenseApiClient:
    return HttpExpenseApiClient(
        ApiSettings(base_url="http://api.test/", session_cookie="abc"),
        CacheSettings(list_retry_wait_seconds=0),
        transport=httpx.MockTransport(recorder),
    )


class TestListExpenses:
    """Tests for GET /api/expenses."""

    @pytest.mark.asyncio
    async def test_parses_collection(self):
        recorder = Recorder(httpx.Response(200, json=EXPENSES_BODY))
        async with _client(recorder) as client:
            collection = await client.list_expenses()

        assert collection.ids == [1, 2]
        assert collection.find(1).file_url == "receipts/rent.pdf"
        assert collection.find(2).amount == Decimal("85.4")
        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == "http://api.test/api/expenses"

    @pytest.mark.asyncio
    async def test_long_server_title_is_readable(self):
        """Test that server records are not held to the input form's limits."""
        long_title = "x" * 201
        recorder = Recorder(httpx.Response(200, json={
            "expenses": [{"id": 1, "title": long_title, "amount": 5}]
        }))
        async with _client(recorder) as client:
            collection = await client.list_expenses()
        assert collection.find(1).title == long_title
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_sends_session_cookie(self):
        recorder = Recorder(httpx.Response(200, json={"expenses": []}))
        async with _client(recorder) as client:
            await client.list_expenses()
        assert "session=abc" in recorder.requests[0].headers["cookie"]

    @pytest.mark.asyncio
    async def test_retried_once(self):
        """Test that one failed read is retried and the retry's answer used."""
        recorder = Recorder(
            httpx.Response(503, text="warming up"),
            httpx.Response(200, json=EXPENSES_BODY),
        )
        async with _client(recorder) as client:
            collection = await client.list_expenses()
        assert len(collection) == 2
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retry(self):
        recorder = Recorder(
            httpx.Response(500, text="db down"),
            httpx.Response(500, text="still down"),
        )
        async with _client(recorder) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.list_expenses()

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "still down"
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        request = httpx.Request("GET", "http://api.test/api/expenses")
        recorder = Recorder(
            httpx.ConnectError("connection refused", request=request),
            httpx.ConnectError("connection refused", request=request),
        )
        async with _client(recorder) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.list_expenses()
        assert exc_info.value.is_transport_error is True

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        recorder = Recorder(
            httpx.Response(200, json=[1, 2, 3]),
            httpx.Response(200, text="<html>"),
        )
        async with _client(recorder) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.list_expenses()
        assert "Malformed" in str(exc_info.value)


class TestWrites:
    """Tests for the calls that are never retried."""

    @pytest.mark.asyncio
    async def test_create(self):
        recorder = Recorder(httpx.Response(
            201, json={"expense": {"id": 7, "title": "Coffee", "amount": 12.5}}
        ))
        async with _client(recorder) as client:
            expense = await client.create_expense(
                NewExpense(title="Coffee", amount=Decimal("12.50"))
            )

        assert expense.id == 7
        request = recorder.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"title": "Coffee", "amount": 12.5}

    @pytest.mark.asyncio
    async def test_create_not_retried(self):
        recorder = Recorder(httpx.Response(500, text="Failed"))
        async with _client(recorder) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.create_expense(NewExpense(title="Coffee", amount=Decimal("1")))
        assert exc_info.value.body == "Failed"
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_create_malformed_response(self):
        recorder = Recorder(httpx.Response(201, json={"id": 7}))
        async with _client(recorder) as client:
            with pytest.raises(ApiError):
                await client.create_expense(NewExpense(title="Coffee", amount=Decimal("1")))

    @pytest.mark.asyncio
    async def test_delete(self):
        recorder = Recorder(httpx.Response(204))
        async with _client(recorder) as client:
            assert await client.delete_expense(3) == 3
        assert recorder.requests[0].method == "DELETE"
        assert recorder.requests[0].url.path == "/api/expenses/3"

    @pytest.mark.asyncio
    async def test_attach_file(self):
        recorder = Recorder(httpx.Response(200, json={}))
        async with _client(recorder) as client:
            await client.attach_file(3, "receipts/r.png")
        request = recorder.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/api/expenses/3"
        assert json.loads(request.content) == {"fileKey": "receipts/r.png"}

    @pytest.mark.asyncio
    async def test_sign_upload(self):
        recorder = Recorder(httpx.Response(
            200, json={"uploadUrl": "https://storage.test/u?sig=1", "key": "receipts/r.png"}
        ))
        async with _client(recorder) as client:
            signed = await client.sign_upload("r.png", "image/png")

        assert signed.upload_url == "https://storage.test/u?sig=1"
        assert signed.key == "receipts/r.png"
        request = recorder.requests[0]
        assert request.url.path == "/api/upload/sign"
        assert json.loads(request.content) == {"filename": "r.png", "type": "image/png"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"key": "receipts/r.png"},
        {"uploadUrl": None, "key": "receipts/r.png"},
        {"uploadUrl": "https://storage.test/u", "key": None},
        {"uploadUrl": "https://storage.test/u"},
        {},
    ])
    async def test_sign_upload_incomplete_still_parses(self, body):
        """Test that null or absent descriptor fields parse as missing."""
        recorder = Recorder(httpx.Response(200, json=body))
        async with _client(recorder) as client:
            signed = await client.sign_upload("r.png", "image/png")
        assert signed.is_complete is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"uploadUrl": None, "key": "k1"},
        {"uploadUrl": "https://storage.test/u", "key": None},
        {"key": "k1"},
    ])
    async def test_incomplete_descriptor_is_invalid_signing_response(self, body):
        """Test that the coordinator rejects it before any transfer."""
        recorder = Recorder(httpx.Response(200, json=body))
        transfer = FakeTransfer()
        async with _client(recorder) as client:
            coordinator = StagedUploadCoordinator(client, transfer)
            session = await coordinator.start(1, ReceiptFile(filename="r.png", content=b"x"))
            with pytest.raises(SignError) as exc_info:
                await coordinator.sign(session)

        assert str(exc_info.value) == INVALID_SIGNING_RESPONSE
        assert session.failed_phase == UploadPhase.SIGNING
        assert transfer.puts == []


class TestReceiptTransfer:
    """Tests for the direct PUT to storage."""

    def _transfer(self, recorder: Recorder) -> HttpReceiptTransfer:
        return HttpReceiptTransfer(
            ApiSettings(base_url="http://api.test", session_cookie="abc"),
            transport=httpx.MockTransport(recorder),
        )

    @pytest.mark.asyncio
    async def test_put_with_content_type(self):
        recorder = Recorder(httpx.Response(200))
        transfer = self._transfer(recorder)
        status = await transfer.put_object("https://storage.test/u?sig=1", b"data", "image/png")
        await transfer.aclose()

        assert status == 200
        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.headers["content-type"] == "image/png"
        assert request.content == b"data"
        assert "cookie" not in request.headers

    @pytest.mark.asyncio
    async def test_no_content_accepted(self):
        transfer = self._transfer(Recorder(httpx.Response(204)))
        assert await transfer.put_object("https://storage.test/u", b"x", "image/png") == 204
        await transfer.aclose()

    @pytest.mark.asyncio
    async def test_server_error(self):
        recorder = Recorder(httpx.Response(500, text="SlowDown"))
        transfer = self._transfer(recorder)
        with pytest.raises(ApiError) as exc_info:
            await transfer.put_object("https://storage.test/u", b"x", "image/png")
        await transfer.aclose()

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "SlowDown"
        assert len(recorder.requests) == 1
