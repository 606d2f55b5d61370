"""Polling controller: turns a slowly changing status resource into a result.

Each attempt is one bounded status fetch. Sleeps between attempts are
``asyncio.sleep`` calls, so many tasks can be polled concurrently from one
event loop, and cancelling the awaiting task aborts at the next await.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog

from taskforceai.core.config import PollingOptions
from taskforceai.core.errors import InvalidArgumentError, TaskTimeoutError, TransportError
from taskforceai.tasks.status import StatusTracker, TaskStatus, parse_task_status
from taskforceai.utils.http_helpers import with_timeout

if TYPE_CHECKING:
    from taskforceai.api.transport import Transport

logger = structlog.get_logger(__name__)


def ensure_task_id(task_id: str) -> str:
    """Reject blank task ids before they reach the network."""
    if not isinstance(task_id, str) or not task_id.strip():
        raise InvalidArgumentError("Task ID must be a non-empty string")
    return task_id


def status_path(task_id: str) -> str:
    return f"/status/{quote(task_id, safe='')}"


async def fetch_task_status(
    transport: Transport,
    task_id: str,
    *,
    request_timeout: float | None = None,
) -> TaskStatus:
    """Fetch and decode the current status once, without retrying."""
    ensure_task_id(task_id)
    payload = await with_timeout(transport.send("GET", status_path(task_id)), request_timeout)
    return parse_task_status(payload)


async def wait_for_completion(
    transport: Transport,
    task_id: str,
    options: PollingOptions | None = None,
    *,
    request_timeout: float | None = None,
) -> TaskStatus:
    """Poll until the task reaches a terminal state.

    Failed and cancelled tasks are returned, not raised; the caller inspects
    ``state`` and ``error``. Unknown states are treated as still in progress.

    Args:
        transport: Transport used for the status fetches
        task_id: Task to poll
        options: Interval and attempt budget (defaults to PollingOptions())
        request_timeout: Deadline for each individual fetch

    Returns:
        The first terminal TaskStatus observed

    Raises:
        InvalidArgumentError: If task_id is blank
        InvalidConfigError: If the options are out of bounds
        TaskTimeoutError: After max_attempts fetches without a terminal state
        TransportError: For non-retryable transport failures
        DecodeError: If the service returns a malformed status
    """
    ensure_task_id(task_id)
    options = (options or PollingOptions()).ensure_valid()
    tracker = StatusTracker(task_id)

    for attempt in range(1, options.max_attempts + 1):
        try:
            status = await fetch_task_status(transport, task_id, request_timeout=request_timeout)
        except TransportError as e:
            if not e.retryable:
                logger.warning(
                    "task_poll_failed",
                    task_id=task_id,
                    attempt=attempt,
                    status_code=e.status_code,
                    error=str(e),
                )
                raise
            logger.info(
                "task_poll_retrying",
                task_id=task_id,
                attempt=attempt,
                max_attempts=options.max_attempts,
                error=str(e),
            )
        else:
            tracker.observe(status)
            if status.is_terminal:
                logger.debug(
                    "task_poll_finished",
                    task_id=task_id,
                    attempt=attempt,
                    state=status.state.value,
                )
                return status
            logger.debug("task_poll_pending", task_id=task_id, attempt=attempt, state=status.raw_state)

        if attempt < options.max_attempts:
            await asyncio.sleep(options.interval)

    logger.warning("task_poll_exhausted", task_id=task_id, attempts=options.max_attempts)
    raise TaskTimeoutError(task_id, options.max_attempts)
