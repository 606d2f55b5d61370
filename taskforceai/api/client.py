"""
TaskForceAI Client
==================

Async client for the TaskForceAI developer API. Composes task submission with
the polling and streaming controllers, and wraps the thread and file
endpoints.
"""

from typing import Any, Dict, Optional

import structlog

from taskforceai.api.constants import DEFAULT_UPLOAD_MIME_TYPE
from taskforceai.api.mock import MockTransport
from taskforceai.api.models import (
    CreateThreadOptions,
    File,
    FileListResponse,
    FileUploadOptions,
    TaskSubmissionOptions,
    Thread,
    ThreadListResponse,
    ThreadMessagesResponse,
    ThreadRunOptions,
    ThreadRunResponse,
)
from taskforceai.api.transport import HttpTransport, Transport
from taskforceai.core.config import ClientOptions, PollingOptions, StreamOptions
from taskforceai.core.errors import DecodeError, InvalidArgumentError
from taskforceai.streaming.controller import TaskStatusStream
from taskforceai.tasks.polling import ensure_task_id, fetch_task_status, wait_for_completion
from taskforceai.tasks.status import TaskStatus
from taskforceai.utils.http_helpers import with_timeout

logger = structlog.get_logger(__name__)


class TaskForceAI:
    """
    Client for the TaskForceAI task-orchestration service.

    Handles:
    - Task submission, single status fetches, polling until completion
    - Status streaming over server-sent events with reconnection
    - Conversation threads and file uploads
    - Mock mode with deterministic in-process responses

    The client only holds immutable configuration and the transport's
    connection pool, so one instance can serve many concurrent tasks.
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        *,
        transport: Optional[Transport] = None,
    ):
        """
        Initialize the client.

        Args:
            options: Client options (defaults to ClientOptions.from_environment())
            transport: Transport override; by default HttpTransport, or
                MockTransport when options.mock_mode is set

        Raises:
            InvalidConfigError: If api_key is missing outside mock mode
        """
        if options is None:
            options = ClientOptions.from_environment()
        self.options = options.ensure_valid()

        if transport is None:
            if self.options.mock_mode:
                transport = MockTransport()
            else:
                transport = HttpTransport(
                    base_url=self.options.base_url,
                    api_key=self.options.api_key,
                    timeout=self.options.timeout,
                )
        self.transport = transport

    @property
    def mock_mode(self) -> bool:
        return self.options.mock_mode

    @property
    def base_url(self) -> str:
        return self.options.base_url

    async def close(self) -> None:
        """Release the transport's connections."""
        await self.transport.aclose()

    async def aclose(self) -> None:
        await self.close()

    async def __aenter__(self) -> "TaskForceAI":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await with_timeout(
            self.transport.send(method, path, body, **kwargs),
            self.options.timeout,
        )

    @staticmethod
    def _require_prompt(prompt: str) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidArgumentError("Prompt must be a non-empty string")
        return prompt

    @staticmethod
    def _decode(model: Any, payload: Any, what: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValueError as e:
            raise DecodeError(f"Invalid {what} payload: {e}") from e

    # =========================================================================
    # Tasks
    # =========================================================================

    async def submit_task(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
    ) -> str:
        """
        Submit a prompt for asynchronous processing.

        Args:
            prompt: Natural-language task request
            options: Model selection, attachments and other per-task options

        Returns:
            The task id

        Raises:
            InvalidArgumentError: If the prompt is empty (no request is sent)
        """
        self._require_prompt(prompt)

        body: Dict[str, Any] = {"prompt": prompt}
        if options is not None:
            body["options"] = options.to_request_options()
            if attachments := options.to_attachments():
                body["attachments"] = attachments

        response = await self._send("POST", "/run", body)
        task_id = None
        if isinstance(response, dict):
            task_id = response.get("taskId") or response.get("task_id") or response.get("id")
        if not isinstance(task_id, str) or not task_id:
            raise DecodeError("Submission response is missing the task id", missing_field="taskId")

        logger.info("task_submitted", task_id=task_id, mock_mode=self.mock_mode)
        return task_id

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """Fetch the current status once, without retrying."""
        return await fetch_task_status(
            self.transport,
            task_id,
            request_timeout=self.options.timeout,
        )

    async def wait_for_completion(
        self,
        task_id: str,
        polling: Optional[PollingOptions] = None,
    ) -> TaskStatus:
        """
        Poll until the task reaches a terminal state.

        Failed and cancelled tasks are returned; inspect ``state`` and ``error``.

        Raises:
            TaskTimeoutError: If max_attempts fetches pass without a terminal state
        """
        return await wait_for_completion(
            self.transport,
            task_id,
            polling,
            request_timeout=self.options.timeout,
        )

    async def run_task(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
        polling: Optional[PollingOptions] = None,
    ) -> TaskStatus:
        """Submit a task and poll until it reaches a terminal state."""
        task_id = await self.submit_task(prompt, options)
        return await self.wait_for_completion(task_id, polling)

    async def stream_task_status(
        self,
        task_id: str,
        stream_options: Optional[StreamOptions] = None,
    ) -> TaskStatusStream:
        """
        Subscribe to status events for a task.

        The first connection is opened before returning, so a rejected
        subscription (bad credential, unknown task) raises here. Because the
        stream is already connected, consume it inside ``async with`` (or call
        ``aclose()``); breaking out of a bare ``async for`` leaves the
        connection open until the stream is garbage collected.

        Returns:
            A started TaskStatusStream; use it with ``async with`` / ``async for``
        """
        ensure_task_id(task_id)
        stream = TaskStatusStream(
            self.transport,
            task_id,
            stream_options,
            request_timeout=self.options.timeout,
        )
        return await stream.start()

    async def run_task_stream(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
        stream_options: Optional[StreamOptions] = None,
    ) -> TaskStatusStream:
        """Submit a task and subscribe to its status events."""
        task_id = await self.submit_task(prompt, options)
        return await self.stream_task_status(task_id, stream_options)

    # =========================================================================
    # Threads
    # =========================================================================

    async def create_thread(self, options: Optional[CreateThreadOptions] = None) -> Thread:
        """Create a new conversation thread."""
        body = options.to_body() if options is not None else {}
        payload = await self._send("POST", "/threads", body)
        return self._decode(Thread, payload, "thread")

    async def list_threads(self, limit: int = 20, offset: int = 0) -> ThreadListResponse:
        """List threads, most recent first."""
        payload = await self._send("GET", "/threads", params={"limit": limit, "offset": offset})
        return self._decode(ThreadListResponse, payload, "thread list")

    async def get_thread(self, thread_id: int) -> Thread:
        payload = await self._send("GET", f"/threads/{thread_id}")
        return self._decode(Thread, payload, "thread")

    async def delete_thread(self, thread_id: int) -> None:
        await self._send("DELETE", f"/threads/{thread_id}")

    async def get_thread_messages(
        self,
        thread_id: int,
        limit: int = 20,
        offset: int = 0,
    ) -> ThreadMessagesResponse:
        """Retrieve messages from a thread."""
        payload = await self._send(
            "GET",
            f"/threads/{thread_id}/messages",
            params={"limit": limit, "offset": offset},
        )
        return self._decode(ThreadMessagesResponse, payload, "thread messages")

    async def run_in_thread(self, thread_id: int, options: ThreadRunOptions) -> ThreadRunResponse:
        """
        Submit a prompt within a thread context.

        The returned ``task_id`` can be passed to wait_for_completion or
        stream_task_status.
        """
        self._require_prompt(options.prompt)
        payload = await self._send("POST", f"/threads/{thread_id}/runs", options.to_body())
        return self._decode(ThreadRunResponse, payload, "thread run")

    # =========================================================================
    # Files
    # =========================================================================

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        options: Optional[FileUploadOptions] = None,
    ) -> File:
        """
        Upload a file as multipart form data.

        Args:
            filename: Name reported to the service
            content: Raw file bytes
            options: Purpose and MIME type (defaults to application/octet-stream)
        """
        if not filename or not filename.strip():
            raise InvalidArgumentError("Filename must be a non-empty string")

        mime_type = (options.mime_type if options else None) or DEFAULT_UPLOAD_MIME_TYPE
        files = {"file": (filename, content, mime_type)}

        data: Dict[str, Any] = {}
        if options is not None:
            if options.purpose:
                data["purpose"] = options.purpose
            if options.mime_type:
                data["mime_type"] = options.mime_type

        payload = await self._send("POST", "/files", files=files, data=data or None)
        return self._decode(File, payload, "file")

    async def list_files(self, limit: int = 20, offset: int = 0) -> FileListResponse:
        """Retrieve a page of uploaded files."""
        payload = await self._send("GET", "/files", params={"limit": limit, "offset": offset})
        return self._decode(FileListResponse, payload, "file list")

    async def get_file(self, file_id: str) -> File:
        payload = await self._send("GET", f"/files/{file_id}")
        return self._decode(File, payload, "file")

    async def delete_file(self, file_id: str) -> None:
        await self._send("DELETE", f"/files/{file_id}")

    async def download_file(self, file_id: str) -> bytes:
        """Download the content of a file."""
        return await with_timeout(
            self.transport.download(f"/files/{file_id}/content"),
            self.options.timeout,
        )
