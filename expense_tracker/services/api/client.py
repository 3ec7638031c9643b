"""
HTTP Clients for the Expense API and Object Storage

Both clients use httpx's async client with a bounded timeout on every call.

DESIGN DECISION: Only the list read is retried (once, by default).
Create, delete, attach, sign and transfer are fire-once: retrying them
could create duplicate expenses or need a fresh signature.
"""

from typing import Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from expense_tracker.config import ApiSettings, CacheSettings, get_settings
from expense_tracker.models.expense import (
    CreatedExpenseResponse,
    Expense,
    ExpenseCollection,
    NewExpense,
)
from expense_tracker.models.upload import SignedUpload
from expense_tracker.services.api.interface import (
    ApiError,
    ExpenseApiInterface,
    ReceiptTransferInterface,
)


logger = structlog.get_logger(__name__)


def _raise_for_status(response: httpx.Response) -> None:
    if not response.is_success:
        raise ApiError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.text,
            reason=response.reason_phrase,
        )


def _parse_json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError as e:
        raise ApiError(
            f"Malformed response: {e}",
            status_code=response.status_code,
        )
    if not isinstance(data, dict):
        raise ApiError(
            "Malformed response: expected a JSON object",
            status_code=response.status_code,
        )
    return data


class HttpExpenseApiClient(ExpenseApiInterface):
    """
    Expense API client over HTTP.

    Calls carry the session cookie so the server can associate them
    with the user.
    """

    def __init__(
        self,
        api_settings: Optional[ApiSettings] = None,
        cache_settings: Optional[CacheSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = api_settings or get_settings().api
        self._cache_settings = cache_settings or get_settings().cache

        cookies = {}
        if self._settings.session_cookie:
            cookies[self._settings.session_cookie_name] = self._settings.session_cookie

        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._settings.request_timeout_seconds,
            cookies=cookies,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpExpenseApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        _raise_for_status(response)
        return response

    async def _fetch_expenses(self) -> ExpenseCollection:
        response = await self._request("GET", "/api/expenses")
        data = _parse_json(response)
        try:
            return ExpenseCollection.model_validate(data)
        except ValueError as e:
            raise ApiError(f"Malformed expense list: {e}", status_code=response.status_code)

    async def list_expenses(self) -> ExpenseCollection:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._cache_settings.list_retry_attempts),
            wait=wait_fixed(self._cache_settings.list_retry_wait_seconds),
            retry=retry_if_exception_type(ApiError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "list_expenses_retry",
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._fetch_expenses()

    async def create_expense(self, new_expense: NewExpense) -> Expense:
        response = await self._request(
            "POST", "/api/expenses", json=new_expense.to_payload()
        )
        data = _parse_json(response)
        try:
            return CreatedExpenseResponse.model_validate(data).expense
        except ValueError as e:
            raise ApiError(f"Malformed create response: {e}", status_code=response.status_code)

    async def delete_expense(self, expense_id: int) -> int:
        await self._request("DELETE", f"/api/expenses/{expense_id}")
        return expense_id

    async def attach_file(self, expense_id: int, file_key: str) -> None:
        await self._request(
            "PATCH", f"/api/expenses/{expense_id}", json={"fileKey": file_key}
        )

    async def sign_upload(self, filename: str, content_type: str) -> SignedUpload:
        response = await self._request(
            "POST",
            "/api/upload/sign",
            json={"filename": filename, "type": content_type},
        )
        data = _parse_json(response)
        try:
            return SignedUpload.model_validate(data)
        except ValueError as e:
            raise ApiError(f"Malformed signing response: {e}", status_code=response.status_code)


class HttpReceiptTransfer(ReceiptTransferInterface):
    """
    PUTs receipt bytes straight to a signed storage URL.

    Uses its own client: the signed URL is the only credential storage
    needs, and the API session cookie must not leak to it.
    """

    def __init__(
        self,
        api_settings: Optional[ApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = api_settings or get_settings().api
        self._client = httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def put_object(
        self,
        upload_url: str,
        content: bytes,
        content_type: str,
    ) -> int:
        try:
            response = await self._client.put(
                upload_url,
                content=content,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as e:
            raise ApiError(f"PUT to storage failed: {e}") from e
        # Object stores answer 200 or 204 depending on vendor
        _raise_for_status(response)
        return response.status_code
