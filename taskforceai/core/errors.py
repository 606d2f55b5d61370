"""Error types raised by the TaskForceAI client.

Every failure surfaced by the client derives from ``ClientError`` so callers
can catch the whole family in one place. Transport-level failures carry a
``retryable`` flag that the polling and streaming controllers use to decide
whether a failure consumes their retry budget or propagates immediately.
"""

from __future__ import annotations

# Status codes that indicate a transient server-side condition
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class ClientError(Exception):
    """Base class for all TaskForceAI client errors."""


class InvalidConfigError(ClientError):
    """Client or controller options are invalid."""


class InvalidArgumentError(ClientError):
    """Bad caller input; no network call was attempted."""


class TransportError(ClientError):
    """Network or HTTP failure reported by the transport.

    Attributes:
        status_code: HTTP status code, or None for connection-level failures
        retryable: Whether retrying the same request may succeed
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        if retryable is None:
            retryable = is_retryable_status(status_code)
        self.retryable = retryable

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"API error (status {self.status_code}): {self.message}"
        return f"Network error: {self.message}"


class DecodeError(ClientError):
    """A payload could not be decoded into a status value."""

    def __init__(self, message: str, *, missing_field: str | None = None) -> None:
        super().__init__(message)
        self.missing_field = missing_field


class TaskTimeoutError(ClientError):
    """Polling exhausted its attempt budget without a terminal state."""

    def __init__(self, task_id: str, attempts: int) -> None:
        super().__init__(
            f"Task {task_id} did not complete within {attempts} polling attempts"
        )
        self.task_id = task_id
        self.attempts = attempts


class StreamDisconnectedError(ClientError):
    """The status stream dropped and could not be re-established."""

    def __init__(self, task_id: str, attempts: int, reason: str | None = None) -> None:
        message = f"Status stream for task {task_id} disconnected after {attempts} reconnect attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.task_id = task_id
        self.attempts = attempts
        self.reason = reason


def is_retryable_status(status_code: int | None) -> bool:
    """Classify an HTTP status code (None means connection-level failure)."""
    if status_code is None:
        return True
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500
