"""HTTP error handling utilities."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import httpx

from taskforceai.core.errors import TransportError

T = TypeVar("T")

# httpx transport failures that will not go away on retry
_NON_RETRYABLE_TRANSPORT_ERRORS = (httpx.UnsupportedProtocol, httpx.LocalProtocolError)


def parse_error_detail(response: httpx.Response) -> str | None:
    """Extract error detail from an HTTP response.

    Args:
        response: The HTTP response object

    Returns:
        The error detail string if present, None otherwise
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("detail", "error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
    return None


def error_from_response(response: httpx.Response) -> TransportError:
    """Build a TransportError for a non-2xx response.

    The response body must already be read.
    """
    detail = parse_error_detail(response)
    if detail is None:
        detail = response.text.strip() or response.reason_phrase or f"HTTP {response.status_code}"
    return TransportError(detail, status_code=response.status_code)


def error_from_exception(e: httpx.HTTPError) -> TransportError:
    """Translate an httpx exception raised before a response was received."""
    if isinstance(e, httpx.TimeoutException):
        return TransportError(f"Request timed out ({type(e).__name__})", retryable=True)
    retryable = not isinstance(e, _NON_RETRYABLE_TRANSPORT_ERRORS)
    return TransportError(str(e) or type(e).__name__, retryable=retryable)


async def with_timeout(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await with an optional deadline, reporting expiry as a retryable TransportError."""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(f"Request exceeded {timeout}s deadline", retryable=True) from e
