"""Unit tests for the reconnecting status stream."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeEventSource, FakeTransport, sse_event, status_payload
from taskforceai.core.config import StreamOptions
from taskforceai.core.errors import (
    DecodeError,
    InvalidArgumentError,
    StreamDisconnectedError,
    TransportError,
)
from taskforceai.streaming.controller import TaskStatusStream, stream_path
from taskforceai.tasks.status import TaskState, TaskStatus

NO_BACKOFF = StreamOptions(max_reconnects=2, backoff_initial=0, backoff_max=0)


async def collect(stream):
    return [item async for item in stream]


def states(items):
    return [item.state for item in items if isinstance(item, TaskStatus)]


class HangingEventSource(FakeEventSource):
    """Event source that never delivers a chunk."""

    def __init__(self):
        super().__init__([])

    async def _iterate(self):
        await asyncio.Event().wait()
        yield ""


class TestStreamSequence:
    """Test item sequencing and termination."""

    @pytest.mark.asyncio
    async def test_yields_each_status_then_ends(self):
        chunks = [sse_event(status_payload(s), event_id=i) for i, s in enumerate(["pending", "running", "completed"])]
        transport = FakeTransport(streams=[chunks])

        stream = await TaskStatusStream(transport, "task-1", NO_BACKOFF).start()
        items = await collect(stream)

        assert states(items) == [TaskState.PENDING, TaskState.RUNNING, TaskState.COMPLETED]
        assert len(items) == 3
        assert stream.closed
        assert stream.last_event_id == "2"
        assert transport.opened[0].closed
        # Exhausted streams stay exhausted
        assert await collect(stream) == []
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_ignores_events_after_terminal_status(self):
        chunks = [sse_event(status_payload("failed", error="boom")), sse_event(status_payload("running"))]
        transport = FakeTransport(streams=[chunks])

        items = await collect(TaskStatusStream(transport, "task-1", NO_BACKOFF))

        assert len(items) == 1
        assert items[0].state is TaskState.FAILED
        assert items[0].error == "boom"

    @pytest.mark.asyncio
    async def test_lazy_until_iterated(self):
        transport = FakeTransport(streams=[[sse_event(status_payload("completed"))]])

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        assert transport.stream_paths == []

        items = await collect(stream)
        assert states(items) == [TaskState.COMPLETED]
        assert transport.stream_paths == ["/stream/task-1"]

    @pytest.mark.asyncio
    async def test_malformed_event_is_yielded_and_stream_continues(self):
        chunks = [sse_event("not json"), sse_event({"state": "running"}), sse_event(status_payload("completed"))]
        transport = FakeTransport(streams=[chunks])

        items = await collect(TaskStatusStream(transport, "task-1", NO_BACKOFF))

        assert isinstance(items[0], DecodeError)
        assert isinstance(items[1], DecodeError)
        assert items[1].missing_field == "id"
        assert items[2].state is TaskState.COMPLETED

    @pytest.mark.asyncio
    async def test_keep_alive_events_are_skipped(self):
        chunks = [": ping\n\n", "data: \n\n", sse_event(status_payload("completed"))]
        transport = FakeTransport(streams=[chunks])

        items = await collect(TaskStatusStream(transport, "task-1", NO_BACKOFF))

        assert states(items) == [TaskState.COMPLETED]


class TestReconnect:
    """Test reconnect and backoff behavior."""

    @pytest.mark.asyncio
    async def test_recovers_after_one_drop(self):
        transport = FakeTransport(
            streams=[
                [sse_event(status_payload("running"))],
                [sse_event(status_payload("completed"))],
            ]
        )

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        items = await collect(stream)

        assert states(items) == [TaskState.RUNNING, TaskState.COMPLETED]
        assert stream.connection_attempts == 2
        assert all(source.closed for source in transport.opened)

    @pytest.mark.asyncio
    async def test_never_recovering_ends_with_disconnect(self):
        transport = FakeTransport(streams=[[]])

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        items = await collect(stream)

        assert len(items) == 1
        assert isinstance(items[0], StreamDisconnectedError)
        assert items[0].attempts == 2
        assert items[0].task_id == "task-1"
        assert len(transport.opened) == 3
        assert all(source.closed for source in transport.opened)
        assert stream.closed

    @pytest.mark.asyncio
    async def test_zero_reconnect_budget(self):
        transport = FakeTransport(streams=[[sse_event(status_payload("running"))]])

        items = await collect(TaskStatusStream(transport, "task-1", StreamOptions(max_reconnects=0)))

        assert states(items) == [TaskState.RUNNING]
        assert isinstance(items[-1], StreamDisconnectedError)
        assert len(transport.opened) == 1

    @pytest.mark.asyncio
    async def test_budget_resets_after_each_status(self):
        options = StreamOptions(max_reconnects=1, backoff_initial=0, backoff_max=0)
        transport = FakeTransport(
            streams=[
                [sse_event(status_payload("pending"))],
                [sse_event(status_payload("running"))],
                [sse_event(status_payload("completed"))],
            ]
        )

        items = await collect(TaskStatusStream(transport, "task-1", options))

        assert states(items) == [TaskState.PENDING, TaskState.RUNNING, TaskState.COMPLETED]

    @pytest.mark.asyncio
    async def test_replayed_status_does_not_refill_budget(self):
        transport = FakeTransport(streams=[[sse_event(status_payload("running"))]])

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        items = await collect(stream)

        assert states(items) == [TaskState.RUNNING] * 3
        assert isinstance(items[-1], StreamDisconnectedError)
        assert items[-1].attempts == 2
        assert len(transport.opened) == 3
        assert all(source.closed for source in transport.opened)

    @pytest.mark.asyncio
    async def test_retryable_stream_error_reconnects(self):
        transport = FakeTransport(
            streams=[
                FakeEventSource([sse_event(status_payload("running"))], error=TransportError("reset")),
                [sse_event(status_payload("completed"))],
            ]
        )

        items = await collect(TaskStatusStream(transport, "task-1", NO_BACKOFF))

        assert states(items) == [TaskState.RUNNING, TaskState.COMPLETED]

    @pytest.mark.asyncio
    async def test_retryable_open_failures_exhaust_budget_at_start(self):
        transport = FakeTransport(streams=[TransportError("unavailable", status_code=503)])

        stream = await TaskStatusStream(transport, "task-1", NO_BACKOFF).start()
        items = await collect(stream)

        assert len(items) == 1
        assert isinstance(items[0], StreamDisconnectedError)
        assert "503" in str(items[0])
        assert len(transport.stream_paths) == 3
        assert transport.opened == []

    @pytest.mark.asyncio
    async def test_backoff_delays(self):
        options = StreamOptions(max_reconnects=4, backoff_initial=1.0, backoff_factor=2.0, backoff_max=5.0)
        transport = FakeTransport(streams=[[]])

        with patch("taskforceai.streaming.controller.asyncio.sleep", new_callable=AsyncMock) as sleep:
            items = await collect(TaskStatusStream(transport, "task-1", options))

        assert isinstance(items[-1], StreamDisconnectedError)
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0, 5.0]


class TestStreamFailures:
    """Test non-retryable failures and closing."""

    @pytest.mark.asyncio
    async def test_non_retryable_open_failure_raises_from_start(self):
        transport = FakeTransport(streams=[TransportError("unauthorized", status_code=401)])

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        with pytest.raises(TransportError) as exc_info:
            await stream.start()

        assert exc_info.value.status_code == 401
        assert len(transport.stream_paths) == 1
        assert stream.closed

    @pytest.mark.asyncio
    async def test_non_retryable_stream_error_raises_and_closes(self):
        source = FakeEventSource(
            [sse_event(status_payload("running"))],
            error=TransportError("gone", status_code=404),
        )
        transport = FakeTransport(streams=[source])

        stream = TaskStatusStream(transport, "task-1", NO_BACKOFF)
        first = await stream.__anext__()
        assert first.state is TaskState.RUNNING

        with pytest.raises(TransportError):
            await stream.__anext__()

        assert source.closed
        assert stream.closed
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_aclose_mid_stream(self):
        chunks = [sse_event(status_payload("pending")), sse_event(status_payload("running"))]
        transport = FakeTransport(streams=[chunks])

        async with TaskStatusStream(transport, "task-1", NO_BACKOFF) as stream:
            first = await stream.__anext__()
            assert first.state is TaskState.PENDING

        assert transport.opened[0].closed
        assert await collect(stream) == []

    @pytest.mark.asyncio
    async def test_cancellation_closes_connection(self):
        source = HangingEventSource()
        transport = FakeTransport(streams=[source])
        stream = await TaskStatusStream(transport, "task-1", NO_BACKOFF).start()

        consumer = asyncio.create_task(stream.__anext__())
        await asyncio.sleep(0.01)
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer

        assert source.closed
        assert stream.closed

    def test_blank_task_id(self):
        with pytest.raises(InvalidArgumentError):
            TaskStatusStream(FakeTransport(), "")

    def test_stream_path_quotes_task_id(self):
        assert stream_path("a/b") == "/stream/a%2Fb"
