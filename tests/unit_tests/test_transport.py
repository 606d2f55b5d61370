"""Unit tests for HttpTransport and MockTransport."""

import json

import httpx
import pytest

from taskforceai.api.constants import MOCK_RESULT
from taskforceai.api.mock import MockTransport
from taskforceai.api.transport import EventSource, HttpTransport, Transport
from taskforceai.core.errors import DecodeError, TransportError


def make_transport(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=1.0)
    return HttpTransport(base_url="http://test/api/developer", api_key=api_key, client=client)


class TestHttpTransport:
    """Test request construction and error mapping."""

    @pytest.mark.asyncio
    async def test_sends_credential_and_sdk_headers(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["headers"] = dict(request.headers)
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"taskId": "t1"})

        transport = make_transport(handler)
        try:
            data = await transport.send("POST", "/run", {"prompt": "hi"})
            assert data == {"taskId": "t1"}
            assert captured["headers"]["x-api-key"] == "test-key"
            assert captured["headers"]["x-sdk-language"] == "python"
            assert "authorization" not in captured["headers"]
            assert captured["url"] == "http://test/api/developer/run"
            assert captured["body"] == {"prompt": "hi"}
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_query_params(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json={"threads": [], "total": 0})

        transport = make_transport(handler)
        try:
            await transport.send("GET", "/threads", params={"limit": 5, "offset": 10})
            assert captured["params"] == {"limit": "5", "offset": "10"}
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        transport = make_transport(lambda request: httpx.Response(204))
        try:
            assert await transport.send("DELETE", "/threads/1") is None
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_decode_error(self):
        transport = make_transport(lambda request: httpx.Response(200, text="<html>"))
        try:
            with pytest.raises(DecodeError):
                await transport.send("GET", "/status/t1")
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("code", "retryable"), [(401, False), (404, False), (429, True), (503, True)])
    async def test_error_status_mapping(self, code, retryable):
        transport = make_transport(lambda request: httpx.Response(code, json={"error": "nope"}))
        try:
            with pytest.raises(TransportError) as exc_info:
                await transport.send("GET", "/status/t1")
            assert exc_info.value.status_code == code
            assert exc_info.value.retryable is retryable
            assert exc_info.value.message == "nope"
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_connection_failure_is_retryable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = make_transport(handler)
        try:
            with pytest.raises(TransportError) as exc_info:
                await transport.send("GET", "/status/t1")
            assert exc_info.value.retryable
            assert exc_info.value.status_code is None
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_download_returns_bytes(self):
        transport = make_transport(lambda request: httpx.Response(200, content=b"\x00\x01"))
        try:
            assert await transport.download("/files/f1/content") == b"\x00\x01"
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_open_stream_yields_text(self):
        captured = {}
        body = 'data: {"id": "t1", "state": "completed"}\n\n'

        def handler(request: httpx.Request) -> httpx.Response:
            captured["accept"] = request.headers.get("accept")
            captured["authorization"] = request.headers.get("authorization")
            captured["api_key"] = request.headers.get("x-api-key")
            return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})

        transport = make_transport(handler)
        try:
            source = await transport.open_stream("/stream/t1")
            assert isinstance(source, EventSource)
            text = "".join([chunk async for chunk in source])
            await source.aclose()
            await source.aclose()
            assert text == body
            assert source.closed
            assert captured["accept"] == "text/event-stream"
            assert captured["authorization"] == "Bearer test-key"
            assert captured["api_key"] == "test-key"
        finally:
            await transport.aclose()

    @pytest.mark.asyncio
    async def test_open_stream_error_status(self):
        transport = make_transport(lambda request: httpx.Response(401, json={"detail": "Invalid API key"}))
        try:
            with pytest.raises(TransportError) as exc_info:
                await transport.open_stream("/stream/t1")
            assert exc_info.value.status_code == 401
            assert "Invalid API key" in str(exc_info.value)
        finally:
            await transport.aclose()

    def test_implements_protocol(self):
        transport = HttpTransport(base_url="http://test", api_key="k")
        assert isinstance(transport, Transport)


class TestMockTransport:
    """Test deterministic mock responses."""

    @pytest.mark.asyncio
    async def test_submission_ids_are_sequential(self):
        transport = MockTransport()
        first = await transport.send("POST", "/run", {"prompt": "a"})
        second = await transport.send("POST", "/run", {"prompt": "b"})
        assert first == {"taskId": "mock-task-1"}
        assert second == {"taskId": "mock-task-2"}

    @pytest.mark.asyncio
    async def test_status_walks_sequence_and_stays_completed(self):
        transport = MockTransport()
        states = [(await transport.send("GET", "/status/mock-task-1"))["status"] for _ in range(4)]
        assert states == ["pending", "running", "completed", "completed"]

    @pytest.mark.asyncio
    async def test_completed_status_carries_result(self):
        transport = MockTransport()
        for _ in range(3):
            payload = await transport.send("GET", "/status/mock-task-1")
        assert payload["result"] == MOCK_RESULT

    @pytest.mark.asyncio
    async def test_unknown_paths_acknowledge(self):
        transport = MockTransport()
        assert await transport.send("POST", "/feedback") == {"status": "ok"}
        assert await transport.download("/exports/report") == b""

    @pytest.mark.asyncio
    async def test_thread_list_is_well_formed_when_empty(self):
        transport = MockTransport()
        assert await transport.send("GET", "/threads") == {"threads": [], "total": 0}

    @pytest.mark.asyncio
    async def test_unknown_thread_and_file_are_not_found(self):
        transport = MockTransport()
        with pytest.raises(TransportError) as exc_info:
            await transport.send("GET", "/threads/7")
        assert exc_info.value.status_code == 404
        assert not exc_info.value.retryable

        with pytest.raises(TransportError) as exc_info:
            await transport.download("/files/missing/content")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_status_path_segment_is_unquoted(self):
        transport = MockTransport()
        payload = await transport.send("GET", "/status/task%20one%2F2")
        assert payload["taskId"] == "task one/2"
        assert (await transport.send("GET", "/status/task%20one%2F2"))["status"] == "running"

    @pytest.mark.asyncio
    async def test_stream_path_segment_is_unquoted(self):
        transport = MockTransport()
        source = await transport.open_stream("/stream/task%20one")
        chunks = [chunk async for chunk in source]
        assert '"taskId": "task one"' in chunks[0]

    @pytest.mark.asyncio
    async def test_tracked_tasks_are_bounded(self, monkeypatch):
        monkeypatch.setattr("taskforceai.api.mock.MAX_TRACKED_TASKS", 2)
        transport = MockTransport()
        await transport.send("GET", "/status/a")
        await transport.send("GET", "/status/b")
        await transport.send("GET", "/status/a")
        await transport.send("GET", "/status/c")

        assert list(transport._observations) == ["a", "c"]
        # "b" was evicted as least recently observed, so it starts over
        assert (await transport.send("GET", "/status/b"))["status"] == "pending"
        assert (await transport.send("GET", "/status/c"))["status"] == "running"

    @pytest.mark.asyncio
    async def test_stream_replays_sequence(self):
        transport = MockTransport()
        source = await transport.open_stream("/stream/mock-task-9")
        chunks = [chunk async for chunk in source]
        assert len(chunks) == 3
        assert '"taskId": "mock-task-9"' in chunks[0]
        assert chunks[0].startswith("id: 1\n")

    def test_implements_protocol(self):
        assert isinstance(MockTransport(), Transport)
