"""Incremental server-sent-event decoding.

SSE format:
    id: 123
    event: status
    data: {"id": "task-1", "state": "running"}
    <blank line>

Lines starting with ``:`` are comments (keep-alives). Multiple ``data:``
lines in one event are joined with ``\\n``. An event still buffered when the
stream ends is dispatched even without its trailing blank line.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ServerSentEvent:
    """One dispatched event."""

    data: str
    event: str = "message"
    id: str | None = None
    retry: int | None = None


class SSEDecoder:
    """Turns arbitrary text chunks into ServerSentEvent values."""

    def __init__(self) -> None:
        self._buffer = ""
        self._data_lines: list[str] = []
        self._event: str | None = None
        self._id: str | None = None
        self._retry: int | None = None

    def feed(self, chunk: str) -> list[ServerSentEvent]:
        """Consume a chunk and return the events it completed."""
        self._buffer += chunk
        # A trailing \r may be the first half of a \r\n split across chunks
        hold_cr = self._buffer.endswith("\r")
        if hold_cr:
            self._buffer = self._buffer[:-1]
        text = self._buffer.replace("\r\n", "\n").replace("\r", "\n")
        *lines, rest = text.split("\n")
        self._buffer = rest + ("\r" if hold_cr else "")

        events: list[ServerSentEvent] = []
        for line in lines:
            if event := self._process_line(line):
                events.append(event)
        return events

    def flush(self) -> list[ServerSentEvent]:
        """Dispatch whatever is left once the stream has ended."""
        events: list[ServerSentEvent] = []
        rest = self._buffer.rstrip("\r")
        self._buffer = ""
        if rest and (event := self._process_line(rest)):
            events.append(event)
        if event := self._dispatch():
            events.append(event)
        return events

    def _process_line(self, line: str) -> ServerSentEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data_lines.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._data_lines and self._event is None:
            return None
        event = ServerSentEvent(
            data="\n".join(self._data_lines),
            event=self._event or "message",
            id=self._id,
            retry=self._retry,
        )
        self._data_lines = []
        self._event = None
        self._retry = None
        # The last event id persists across events
        return event


async def iter_sse_events(chunks: AsyncIterable[str]) -> AsyncGenerator[ServerSentEvent, None]:
    """Decode an async stream of text chunks into events."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
