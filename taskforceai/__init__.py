"""Async Python client for the TaskForceAI task-orchestration service."""

from taskforceai.api.client import TaskForceAI
from taskforceai.api.models import (
    CreateThreadOptions,
    File,
    FileListResponse,
    FileUploadOptions,
    ImageAttachment,
    TaskSubmissionOptions,
    Thread,
    ThreadListResponse,
    ThreadMessage,
    ThreadMessagesResponse,
    ThreadRunOptions,
    ThreadRunResponse,
)
from taskforceai.core.config import ClientOptions, PollingOptions, StreamOptions
from taskforceai.core.errors import (
    ClientError,
    DecodeError,
    InvalidArgumentError,
    InvalidConfigError,
    StreamDisconnectedError,
    TaskTimeoutError,
    TransportError,
)
from taskforceai.streaming.controller import StreamItem, TaskStatusStream
from taskforceai.tasks.status import TaskState, TaskStatus, parse_task_status

__version__ = "0.1.0"

__all__ = [
    # Client
    "TaskForceAI",
    # Options
    "ClientOptions",
    "PollingOptions",
    "StreamOptions",
    "TaskSubmissionOptions",
    "ImageAttachment",
    # Status
    "TaskState",
    "TaskStatus",
    "parse_task_status",
    "StreamItem",
    "TaskStatusStream",
    # Threads and files
    "CreateThreadOptions",
    "File",
    "FileListResponse",
    "FileUploadOptions",
    "Thread",
    "ThreadListResponse",
    "ThreadMessage",
    "ThreadMessagesResponse",
    "ThreadRunOptions",
    "ThreadRunResponse",
    # Errors
    "ClientError",
    "DecodeError",
    "InvalidArgumentError",
    "InvalidConfigError",
    "StreamDisconnectedError",
    "TaskTimeoutError",
    "TransportError",
]
