"""
API Client Module for TaskForceAI
==================================

This module provides the async client for the TaskForceAI developer API.

Components:
- client: TaskForceAI facade for tasks, threads and files
- transport: Transport protocol and the httpx-backed HttpTransport
- mock: In-process MockTransport used by mock mode
- models: Submission options and thread/file payloads
- constants: Header names and mock defaults
"""

from taskforceai.api.client import TaskForceAI
from taskforceai.api.mock import MockTransport
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
from taskforceai.api.transport import EventSource, HttpTransport, Transport

__all__ = [
    # Client
    "TaskForceAI",
    # Transports
    "EventSource",
    "HttpTransport",
    "MockTransport",
    "Transport",
    # Models
    "CreateThreadOptions",
    "File",
    "FileListResponse",
    "FileUploadOptions",
    "ImageAttachment",
    "TaskSubmissionOptions",
    "Thread",
    "ThreadListResponse",
    "ThreadMessage",
    "ThreadMessagesResponse",
    "ThreadRunOptions",
    "ThreadRunResponse",
]
