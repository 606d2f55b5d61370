"""Streaming controller for task status events.

``TaskStatusStream`` is a lazy, single-consumer, forward-only async iterator
over the status events of one task. It yields:

- ``TaskStatus`` for every decoded event, ending right after the first
  terminal status
- ``DecodeError`` for an individual malformed event (the stream continues)
- ``StreamDisconnectedError`` as the last item once the reconnect budget is
  spent

Non-retryable transport failures close the stream and are raised from
``__anext__``. The underlying connection is closed on every exit path:
terminal status, exhaustion, failure, ``aclose()``, leaving an ``async with``
block, or cancellation of the consuming task.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from types import TracebackType
from typing import TYPE_CHECKING, Union
from urllib.parse import quote

import structlog

from taskforceai.core.config import StreamOptions
from taskforceai.core.errors import ClientError, DecodeError, StreamDisconnectedError, TransportError
from taskforceai.streaming.sse import ServerSentEvent, iter_sse_events
from taskforceai.tasks.polling import ensure_task_id
from taskforceai.tasks.status import StatusTracker, TaskStatus, parse_task_status
from taskforceai.utils.http_helpers import with_timeout

if TYPE_CHECKING:
    from taskforceai.api.transport import EventSource, Transport

logger = structlog.get_logger(__name__)

StreamItem = Union[TaskStatus, DecodeError, StreamDisconnectedError]


def stream_path(task_id: str) -> str:
    return f"/stream/{quote(task_id, safe='')}"


class TaskStatusStream:
    """Cancellable, reconnecting sequence of status updates for one task."""

    def __init__(
        self,
        transport: Transport,
        task_id: str,
        options: StreamOptions | None = None,
        *,
        request_timeout: float | None = None,
    ) -> None:
        """
        Create a stream; no connection is opened until start() or iteration.

        Args:
            transport: Transport used to open event streams
            task_id: Task whose status events are consumed
            options: Reconnect policy (defaults to StreamOptions())
            request_timeout: Deadline for each connection attempt
        """
        self.task_id = ensure_task_id(task_id)
        self._transport = transport
        self._options = (options or StreamOptions()).ensure_valid()
        self._request_timeout = request_timeout
        self._path = stream_path(task_id)
        self._tracker = StatusTracker(task_id)

        self._source: EventSource | None = None
        self._events: AsyncGenerator[ServerSentEvent, None] | None = None
        self._pending: StreamDisconnectedError | None = None
        self._started = False
        self._finished = False

        self.connection_attempts = 0
        self.reconnects = 0
        self.last_event_id: str | None = None
        self._last_drop_reason: str | None = None

    @property
    def closed(self) -> bool:
        """True once the stream is exhausted or closed."""
        return self._finished

    @property
    def latest(self) -> TaskStatus | None:
        """Most recent status yielded by the stream."""
        return self._tracker.latest

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> TaskStatusStream:
        """Open the first connection.

        Retryable failures follow the reconnect policy; if the budget runs
        out the disconnect is delivered as the first item. Non-retryable
        failures are raised here.
        """
        if self._started:
            return self
        self._started = True
        try:
            self._pending = await self._connect()
        except BaseException:
            await self._shutdown()
            raise
        return self

    async def aclose(self) -> None:
        """Close the connection and end the sequence."""
        await self._shutdown()

    async def __aenter__(self) -> TaskStatusStream:
        return await self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __aiter__(self) -> TaskStatusStream:
        return self

    async def __anext__(self) -> StreamItem:
        if self._finished:
            raise StopAsyncIteration
        try:
            return await self._next_item()
        except (ClientError, asyncio.CancelledError):
            await self._shutdown()
            raise

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _next_item(self) -> StreamItem:
        if not self._started:
            await self.start()

        while True:
            if self._pending is not None:
                disconnected, self._pending = self._pending, None
                await self._shutdown()
                return disconnected

            if self._events is None:
                self._pending = await self._connect()
                continue

            try:
                event = await self._events.__anext__()
            except StopAsyncIteration:
                await self._drop("server closed the stream before a terminal status")
                continue
            except TransportError as e:
                if not e.retryable:
                    raise
                await self._drop(str(e))
                continue

            if event.id is not None:
                self.last_event_id = event.id
            if not event.data.strip():
                continue

            try:
                status = parse_task_status(event.data)
            except DecodeError as e:
                logger.warning(
                    "task_stream_event_malformed",
                    task_id=self.task_id,
                    event_id=event.id,
                    error=str(e),
                )
                return e

            previous = self._tracker.latest
            # Only a state change counts as progress; servers that replay the
            # current status on every connect must not refill the budget
            if previous is None or status.state is not previous.state:
                self.reconnects = 0
            self._tracker.observe(status)
            if status.is_terminal:
                logger.debug(
                    "task_stream_finished",
                    task_id=self.task_id,
                    state=status.state.value,
                    connections=self.connection_attempts,
                )
                await self._shutdown()
            return status

    async def _connect(self) -> StreamDisconnectedError | None:
        """Open a connection, backing off between attempts.

        Returns:
            None once connected, or the disconnect item when the budget is spent
        """
        while True:
            if self.connection_attempts > 0:
                if self.reconnects >= self._options.max_reconnects:
                    logger.warning(
                        "task_stream_reconnects_exhausted",
                        task_id=self.task_id,
                        reconnects=self.reconnects,
                        reason=self._last_drop_reason,
                    )
                    return StreamDisconnectedError(
                        self.task_id, self.reconnects, self._last_drop_reason
                    )
                self.reconnects += 1
                delay = self._options.backoff_delay(self.reconnects)
                logger.info(
                    "task_stream_reconnecting",
                    task_id=self.task_id,
                    reconnect=self.reconnects,
                    delay=delay,
                    last_event_id=self.last_event_id,
                )
                await asyncio.sleep(delay)

            self.connection_attempts += 1
            try:
                source = await with_timeout(
                    self._transport.open_stream(self._path), self._request_timeout
                )
            except TransportError as e:
                if not e.retryable:
                    logger.warning(
                        "task_stream_open_failed",
                        task_id=self.task_id,
                        status_code=e.status_code,
                        error=str(e),
                    )
                    raise
                self._last_drop_reason = str(e)
                logger.info("task_stream_open_retrying", task_id=self.task_id, error=str(e))
                continue

            self._source = source
            self._events = iter_sse_events(source)
            return None

    async def _drop(self, reason: str) -> None:
        logger.info("task_stream_dropped", task_id=self.task_id, reason=reason)
        self._last_drop_reason = reason
        await self._close_connection()

    async def _close_connection(self) -> None:
        events, source = self._events, self._source
        self._events = None
        self._source = None
        if events is not None:
            await events.aclose()
        if source is not None:
            await source.aclose()

    async def _shutdown(self) -> None:
        self._finished = True
        self._pending = None
        await self._close_connection()
