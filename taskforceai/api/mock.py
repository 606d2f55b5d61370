"""In-process transport used when the client runs in mock mode.

Every mock task walks the same fixed sequence, pending -> running ->
completed, one step per status observation, so the whole client surface can
be exercised without network access. Threads and files live in memory for
the life of the transport; unknown ids answer with a 404 like the service.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import unquote

import structlog

from taskforceai.api.constants import DEFAULT_UPLOAD_MIME_TYPE, MOCK_RESULT, MOCK_TASK_PREFIX
from taskforceai.core.errors import TransportError

logger = structlog.get_logger(__name__)

MOCK_STATE_SEQUENCE = ("pending", "running", "completed")
MOCK_FILE_PREFIX = "mock-file-"
DEFAULT_MOCK_PURPOSE = "assistants"

# Oldest tasks are forgotten past this many and restart at "pending"
MAX_TRACKED_TASKS = 1024

_MOCK_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _timestamp(offset: int) -> str:
    return (_MOCK_EPOCH + timedelta(seconds=offset)).isoformat()


def mock_status_payload(task_id: str, step: int) -> Dict[str, Any]:
    """Deterministic status payload for the given observation step."""
    step = min(step, len(MOCK_STATE_SEQUENCE) - 1)
    state = MOCK_STATE_SEQUENCE[step]
    payload: Dict[str, Any] = {
        "taskId": task_id,
        "status": state,
        "updated_at": _timestamp(step),
    }
    if state == "completed":
        payload["result"] = MOCK_RESULT
    return payload


def _split_path(path: str) -> List[str]:
    return [unquote(segment) for segment in path.strip("/").split("/") if segment]


def _not_found(what: str, identifier: Any) -> TransportError:
    return TransportError(f"{what} {identifier} not found", status_code=404)


def _page(items: List[Dict[str, Any]], params: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    params = params or {}
    offset = int(params.get("offset", 0))
    limit = int(params.get("limit", len(items)))
    return items[offset:offset + limit]


class MockEventSource:
    """Replays the fixed state sequence as server-sent events."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[str]:
        for step in range(len(MOCK_STATE_SEQUENCE)):
            if self.closed:
                return
            await asyncio.sleep(0)
            payload = json.dumps(mock_status_payload(self.task_id, step))
            yield f"id: {step + 1}\ndata: {payload}\n\n"

    async def aclose(self) -> None:
        self.closed = True


class MockTransport:
    """Transport that synthesizes service responses in-process."""

    def __init__(self) -> None:
        self._task_numbers = itertools.count(1)
        self._thread_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._file_numbers = itertools.count(1)
        self._clock = itertools.count(0)

        self._observations: OrderedDict[str, int] = OrderedDict()
        self._threads: Dict[int, Dict[str, Any]] = {}
        self._messages: Dict[int, List[Dict[str, Any]]] = {}
        self._files: Dict[str, Dict[str, Any]] = {}
        self._contents: Dict[str, bytes] = {}

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
        await asyncio.sleep(0)
        method = method.upper()
        segments = _split_path(path)
        root = segments[0] if segments else ""

        if method == "POST" and segments == ["run"]:
            task_id = self._new_task()
            return {"taskId": task_id}

        if root == "status" and len(segments) == 2:
            return self._observe(segments[1])

        if root == "threads":
            return self._threads_route(method, segments[1:], body, params)

        if root == "files":
            return self._files_route(method, segments[1:], params, files, data)

        return {"status": "ok"}

    async def download(self, path: str) -> bytes:
        await asyncio.sleep(0)
        segments = _split_path(path)
        if len(segments) == 3 and segments[0] == "files" and segments[2] == "content":
            file_id = segments[1]
            if file_id not in self._contents:
                raise _not_found("File", file_id)
            return self._contents[file_id]
        return b""

    async def open_stream(self, path: str) -> MockEventSource:
        await asyncio.sleep(0)
        return MockEventSource(_split_path(path)[-1])

    async def aclose(self) -> None:
        self._observations.clear()

    # =========================================================================
    # Tasks
    # =========================================================================

    def _new_task(self) -> str:
        task_id = f"{MOCK_TASK_PREFIX}{next(self._task_numbers)}"
        logger.debug("mock_task_submitted", task_id=task_id)
        return task_id

    def _observe(self, task_id: str) -> Dict[str, Any]:
        step = self._observations.pop(task_id, 0)
        self._observations[task_id] = step + 1
        while len(self._observations) > MAX_TRACKED_TASKS:
            self._observations.popitem(last=False)
        return mock_status_payload(task_id, step)

    # =========================================================================
    # Threads
    # =========================================================================

    def _threads_route(
        self,
        method: str,
        segments: List[str],
        body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> Any:
        body = body or {}

        if not segments:
            if method == "POST":
                return self._create_thread(body)
            threads = sorted(self._threads.values(), key=lambda t: t["id"], reverse=True)
            return {"threads": _page(threads, params), "total": len(threads)}

        thread_id, thread = self._get_thread(segments[0])
        rest = segments[1:]

        if not rest:
            if method == "DELETE":
                del self._threads[thread_id]
                self._messages.pop(thread_id, None)
                return None
            return thread

        if rest == ["messages"]:
            messages = self._messages[thread_id]
            return {"messages": _page(messages, params), "total": len(messages)}

        if rest == ["runs"] and method == "POST":
            message = self._add_message(thread_id, "user", str(body.get("prompt", "")))
            return {
                "task_id": self._new_task(),
                "thread_id": thread_id,
                "message_id": message["id"],
            }

        return {"status": "ok"}

    def _get_thread(self, raw_id: str) -> Tuple[int, Dict[str, Any]]:
        try:
            thread_id = int(raw_id)
        except ValueError:
            raise _not_found("Thread", raw_id) from None
        if thread_id not in self._threads:
            raise _not_found("Thread", thread_id)
        return thread_id, self._threads[thread_id]

    def _create_thread(self, body: Dict[str, Any]) -> Dict[str, Any]:
        thread_id = next(self._thread_ids)
        now = _timestamp(next(self._clock))
        thread = {
            "id": thread_id,
            "title": body.get("title") or f"Thread {thread_id}",
            "created_at": now,
            "updated_at": now,
        }
        self._threads[thread_id] = thread
        self._messages[thread_id] = []
        for message in body.get("messages") or []:
            self._add_message(thread_id, message.get("role", "user"), message.get("content", ""))
        return thread

    def _add_message(self, thread_id: int, role: str, content: str) -> Dict[str, Any]:
        now = _timestamp(next(self._clock))
        message = {
            "id": next(self._message_ids),
            "thread_id": thread_id,
            "role": role,
            "content": content,
            "created_at": now,
        }
        self._messages[thread_id].append(message)
        self._threads[thread_id]["updated_at"] = now
        return message

    # =========================================================================
    # Files
    # =========================================================================

    def _files_route(
        self,
        method: str,
        segments: List[str],
        params: Optional[Dict[str, Any]],
        files: Optional[Dict[str, Any]],
        data: Optional[Dict[str, Any]],
    ) -> Any:
        if not segments:
            if method == "POST":
                return self._upload(files or {}, data or {})
            listed = list(self._files.values())
            return {"files": _page(listed, params), "total": len(listed)}

        file_id = segments[0]
        if file_id not in self._files:
            raise _not_found("File", file_id)
        if method == "DELETE":
            del self._files[file_id]
            self._contents.pop(file_id, None)
            return None
        return self._files[file_id]

    def _upload(self, files: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        filename, content, mime_type = files.get("file", ("upload", b"", DEFAULT_UPLOAD_MIME_TYPE))
        file_id = f"{MOCK_FILE_PREFIX}{next(self._file_numbers)}"
        record = {
            "id": file_id,
            "filename": filename,
            "purpose": data.get("purpose") or DEFAULT_MOCK_PURPOSE,
            "bytes": len(content),
            "created_at": _timestamp(next(self._clock)),
            "mime_type": data.get("mime_type") or mime_type,
        }
        self._files[file_id] = record
        self._contents[file_id] = bytes(content)
        return record
