"""Server-sent-event decoding and the reconnecting status stream."""

from taskforceai.streaming.controller import StreamItem, TaskStatusStream
from taskforceai.streaming.sse import ServerSentEvent, SSEDecoder, iter_sse_events

__all__ = [
    "SSEDecoder",
    "ServerSentEvent",
    "StreamItem",
    "TaskStatusStream",
    "iter_sse_events",
]
