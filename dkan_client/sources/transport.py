"""HTTP request executor for the DKAN REST API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

import httpx

from dkan_client.config import ClientConfig
from dkan_client.errors import DkanApiError, RequestCancelledError
from dkan_client.models import ApiResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_from_response(response: httpx.Response) -> DkanApiError:
    text = response.text
    message = f"HTTP {response.status_code}: {response.reason_phrase}"
    timestamp = None
    data = None
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        if payload.get("message"):
            message = str(payload["message"])
        timestamp = payload.get("timestamp")
        data = payload.get("data")
    return DkanApiError(
        message,
        status_code=response.status_code,
        response=text,
        timestamp=timestamp,
        data=data,
    )


class Transport:
    """Executes requests against one DKAN site.

    Failures that leave no usable response (network errors, timeouts,
    redirect loops) are retried up to ``config.retry`` times with linear
    backoff (``retry_delay * attempt``). Any HTTP response, including an
    error status, is final.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            timeout=config.timeout,
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
            transport=http_transport,
        )
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def build_headers(self, headers: Optional[Mapping[str, str]] = None) -> httpx.Headers:
        merged = httpx.Headers({"Accept": "application/json", "Content-Type": "application/json"})
        merged.update(headers or {})
        authorization = self.config.authorization_header()
        if authorization:
            merged["Authorization"] = authorization
        return merged

    async def execute(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        *,
        retry_count: int = 0,
        cancel: Optional[asyncio.Event] = None,
    ) -> ApiResponse:
        response = await self._send(path, method, headers, body, retry_count, cancel)
        if not response.content:
            data = None
        else:
            try:
                data = response.json()
            except ValueError as exc:
                logger.error(
                    "dkan_invalid_json",
                    extra={"path": path, "method": method, "status": response.status_code},
                )
                raise DkanApiError(f"Invalid JSON in response: {exc}") from exc
        return ApiResponse(data=data, status=response.status_code, status_text=response.reason_phrase)

    async def download(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bytes:
        # exports are CSV or JSON depending on the requested format
        request_headers = httpx.Headers({"Accept": "*/*"})
        request_headers.update(headers or {})
        response = await self._send(path, method, request_headers, body, 0, cancel)
        return response.content

    async def fetch_url(self, url: str, *, cancel: Optional[asyncio.Event] = None) -> Any:
        """GET an absolute URL (e.g. a distribution's ``describedBy``) without auth."""

        def send() -> Awaitable[httpx.Response]:
            return self._client.get(url, headers={"Accept": "application/json"})

        response = await self._attempt(send, url, "GET", 0, cancel)
        if not response.is_success:
            raise _error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise DkanApiError(f"Invalid JSON in response: {exc}") from exc

    async def _send(
        self,
        path: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        body: Any,
        retry_count: int,
        cancel: Optional[asyncio.Event],
    ) -> httpx.Response:
        url = f"{self.config.base_url}{path}"
        request_headers = self.build_headers(headers)
        content = None if body is None else json.dumps(body, ensure_ascii=False).encode("utf-8")

        def send() -> Awaitable[httpx.Response]:
            return self._client.request(method, url, headers=request_headers, content=content)

        response = await self._attempt(send, path, method, retry_count, cancel)
        if not response.is_success:
            error = _error_from_response(response)
            logger.info(
                "dkan_http_error",
                extra={"path": path, "method": method, "status": response.status_code},
            )
            raise error
        return response

    async def _attempt(
        self,
        send: Callable[[], Awaitable[httpx.Response]],
        path: str,
        method: str,
        retry_count: int,
        cancel: Optional[asyncio.Event],
    ) -> httpx.Response:
        attempt = retry_count
        while True:
            try:
                return await self._race(send(), cancel)
            except httpx.RequestError as exc:
                if attempt >= self.config.retry:
                    logger.error(
                        "dkan_request_failed",
                        extra={"path": path, "method": method, "attempts": attempt + 1},
                    )
                    raise DkanApiError(str(exc) or "Unknown error occurred") from exc
                delay = self.config.retry_delay * (attempt + 1)
                logger.warning(
                    "dkan_request_retry",
                    extra={
                        "path": path,
                        "method": method,
                        "attempt": attempt + 1,
                        "delay_ms": delay,
                        "error": type(exc).__name__,
                    },
                )
                await self._race(self._sleep(delay / 1000), cancel)
                attempt += 1

    async def _race(self, awaitable: Awaitable[T], cancel: Optional[asyncio.Event]) -> T:
        if cancel is None:
            return await awaitable
        if cancel.is_set():
            _discard(awaitable)
            raise RequestCancelledError()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if work.done():
            return work.result()
        work.cancel()
        # wait for the abandoned request to unwind; its outcome is irrelevant now
        await asyncio.gather(work, return_exceptions=True)
        raise RequestCancelledError()


def _discard(awaitable: Awaitable[Any]) -> None:
    close = getattr(awaitable, "close", None)
    if close is not None:
        close()
