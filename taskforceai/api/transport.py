"""
HTTP transport for the TaskForceAI client
==========================================

The controllers only depend on the ``Transport`` protocol: send a request and
get a decoded JSON payload back, or open an event stream that yields raw text
chunks. ``HttpTransport`` implements it over a shared ``httpx.AsyncClient``
and is the single place where httpx exceptions are translated into
``TransportError``.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Optional, Protocol, runtime_checkable

import httpx
import structlog

from taskforceai.api.constants import (
    API_KEY_HEADER,
    AUTHORIZATION_HEADER,
    EVENT_STREAM_MEDIA_TYPE,
    SDK_LANGUAGE,
    SDK_LANGUAGE_HEADER,
)
from taskforceai.core.config import DEFAULT_TIMEOUT
from taskforceai.core.errors import DecodeError
from taskforceai.utils.http_helpers import error_from_exception, error_from_response

logger = structlog.get_logger(__name__)


@runtime_checkable
class EventSource(Protocol):
    """An open event stream: async-iterates raw text chunks until the server closes it."""

    def __aiter__(self) -> AsyncIterator[str]: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class Transport(Protocol):
    """Capability the controllers and the client facade are written against."""

    async def send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        *,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any: ...

    async def download(self, path: str) -> bytes: ...

    async def open_stream(self, path: str) -> EventSource: ...

    async def aclose(self) -> None: ...


class HttpEventSource:
    """Event source backed by a streaming httpx response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[str]:
        try:
            async for chunk in self._response.aiter_text():
                yield chunk
        except httpx.HTTPError as e:
            raise error_from_exception(e) from e

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._response.aclose()


class HttpTransport:
    """
    Authenticated HTTP transport.

    Handles:
    - Credential and SDK headers on every request
    - JSON request/response bodies and multipart uploads
    - Event-stream connections for task status
    - Mapping of httpx failures and non-2xx responses to TransportError
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Service base URL, paths are appended verbatim
            api_key: Credential sent as the x-api-key header
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client (tests inject one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _url(self, path: str) -> str:
        # urljoin would drop the base path (/api/developer) for absolute paths
        return f"{self.base_url}{path}"

    def _make_headers(self, *, accept: str | None = None, bearer: bool = False) -> Dict[str, str]:
        """Build request headers with credential and optional accept type.

        The stream endpoint authenticates with a bearer token, so ``bearer``
        adds the Authorization header next to x-api-key.
        """
        headers = {SDK_LANGUAGE_HEADER: SDK_LANGUAGE}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
            if bearer:
                headers[AUTHORIZATION_HEADER] = f"Bearer {self.api_key}"
        if accept:
            headers["Accept"] = accept
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._url(path)
        try:
            response = await self.client.request(method, url, headers=self._make_headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("transport_request_failed", method=method, path=path, error=str(e))
            raise error_from_exception(e) from e

        if response.is_error:
            logger.debug(
                "transport_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise error_from_response(response)
        return response

    # =========================================================================
    # Transport protocol
    # =========================================================================

    async def send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        *,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and decode the JSON response.

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            TransportError: On connection failures and non-2xx responses
            DecodeError: If a non-empty body is not JSON
        """
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        if params:
            kwargs["params"] = params
        if files:
            kwargs["files"] = files
        if data:
            kwargs["data"] = data

        response = await self._request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {path} is not valid JSON: {e}") from e

    async def download(self, path: str) -> bytes:
        """Fetch a raw response body."""
        response = await self._request("GET", path)
        return response.content

    async def open_stream(self, path: str) -> HttpEventSource:
        """
        Open an event-stream connection.

        The read timeout is lifted so idle streams stay open; the streaming
        controller bounds the open call itself with the request timeout.
        """
        request = self.client.build_request(
            "GET",
            self._url(path),
            headers=self._make_headers(accept=EVENT_STREAM_MEDIA_TYPE, bearer=True),
            timeout=httpx.Timeout(self.timeout, read=None),
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning("transport_stream_open_failed", path=path, error=str(e))
            raise error_from_exception(e) from e

        if response.is_error:
            try:
                await response.aread()
            except httpx.HTTPError as e:
                raise error_from_exception(e) from e
            finally:
                await response.aclose()
            raise error_from_response(response)

        return HttpEventSource(response)
