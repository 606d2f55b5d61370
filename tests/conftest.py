"""Pytest configuration and shared fixtures for taskforceai tests."""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


# ============================================================================
# Payload Helpers
# ============================================================================


def status_payload(state, task_id="task-1", **extra):
    """Build a wire status payload."""
    payload = {"id": task_id, "state": state}
    payload.update(extra)
    return payload


def sse_event(payload, event_id=None):
    """Encode a payload as one server-sent event."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"data: {data}")
    return "\n".join(lines) + "\n\n"


# ============================================================================
# Fake Transport
# ============================================================================


class FakeEventSource:
    """Scripted event stream that records whether it was closed."""

    def __init__(self, chunks, *, error=None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            if self.closed:
                return
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


class FakeTransport:
    """Transport double with scripted responses and call counters.

    ``responses`` feed ``send``; ``streams`` feed ``open_stream``. Each entry
    is consumed in order and the last one repeats. An exception entry is
    raised; a list of chunks opens a new FakeEventSource.
    """

    def __init__(self, responses=None, streams=None):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.calls = []
        self.stream_paths = []
        self.opened = []
        self.closed = False

    @staticmethod
    def _next(script):
        if not script:
            raise AssertionError("unexpected transport call")
        return script.pop(0) if len(script) > 1 else script[0]

    async def send(self, method, path, body=None, **kwargs):
        self.calls.append((method, path, body, kwargs))
        response = self._next(self.responses)
        if isinstance(response, BaseException):
            raise response
        return response

    async def download(self, path):
        self.calls.append(("GET", path, None, {}))
        return self._next(self.responses)

    async def open_stream(self, path):
        self.stream_paths.append(path)
        entry = self._next(self.streams)
        if isinstance(entry, BaseException):
            raise entry
        source = entry if isinstance(entry, FakeEventSource) else FakeEventSource(entry)
        self.opened.append(source)
        return source

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_transport():
    """Empty FakeTransport; tests fill in responses and streams."""
    return FakeTransport()


@pytest.fixture
def mock_options():
    """ClientOptions for mock mode with no credential."""
    from taskforceai.core.config import ClientOptions

    return ClientOptions(mock_mode=True)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TASKFORCEAI_* variables and stop .env loading."""
    for name in (
        "TASKFORCEAI_API_KEY",
        "TASKFORCEAI_BASE_URL",
        "TASKFORCEAI_TIMEOUT",
        "TASKFORCEAI_MOCK_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("taskforceai.core.config.dotenv.load_dotenv", lambda *a, **kw: False)
    return monkeypatch
