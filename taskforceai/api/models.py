"""
Data Models for API Client Module
===================================

Pydantic models for task submission options and for the request and
response bodies of the thread and file endpoints. Task status lives in
``taskforceai.tasks.status``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class ImageAttachment(BaseModel):
    """A base64-encoded image attachment to include with a task prompt."""

    data: str
    mime_type: str
    name: Optional[str] = None


# =============================================================================
# Task submission
# =============================================================================


class TaskSubmissionOptions(BaseModel):
    """Per-task options sent alongside the prompt.

    Unknown keyword arguments are kept and forwarded as additional options.
    Images travel as top-level attachments, never inside ``options``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        protected_namespaces=(),
    )

    model_id: Optional[str] = None
    silent: Optional[bool] = None
    mock: Optional[bool] = None
    vercel_ai_key: Optional[str] = None
    images: Optional[List[ImageAttachment]] = Field(default=None, exclude=True)

    def to_request_options(self) -> Dict[str, Any]:
        """Serialize to the camelCase ``options`` object of a run request."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_attachments(self) -> List[Dict[str, Any]]:
        """Serialize images for the ``attachments`` field (empty if none)."""
        if not self.images:
            return []
        return [image.model_dump(exclude_none=True) for image in self.images]


# =============================================================================
# Threads
# =============================================================================


class Thread(BaseModel):
    """A conversation thread."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    created_at: datetime
    updated_at: datetime


class ThreadMessage(BaseModel):
    """A message within a thread."""

    model_config = ConfigDict(extra="ignore")

    id: int
    thread_id: int
    role: str  # "user" or "assistant"
    content: str
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> int:
        # The service stores message timestamps as whole epoch seconds
        return int(value.timestamp())


class CreateThreadOptions(BaseModel):
    """Options for creating a thread."""

    title: Optional[str] = None
    messages: Optional[List[ThreadMessage]] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ThreadListResponse(BaseModel):
    threads: List[Thread]
    total: int


class ThreadMessagesResponse(BaseModel):
    messages: List[ThreadMessage]
    total: int


class ThreadRunOptions(BaseModel):
    """Options for running a prompt in a thread."""

    model_config = ConfigDict(protected_namespaces=())

    prompt: str
    model_id: Optional[str] = None
    options: Optional[Dict[str, Any]] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ThreadRunResponse(BaseModel):
    """Response from running in a thread; ``task_id`` feeds the task controllers."""

    model_config = ConfigDict(extra="ignore")

    task_id: str = Field(validation_alias=AliasChoices("task_id", "taskId"))
    thread_id: int = Field(validation_alias=AliasChoices("thread_id", "threadId"))
    message_id: int = Field(validation_alias=AliasChoices("message_id", "messageId"))


# =============================================================================
# Files
# =============================================================================


class File(BaseModel):
    """An uploaded file."""

    model_config = ConfigDict(extra="ignore")

    id: str
    filename: str
    purpose: str
    bytes: int
    created_at: datetime
    mime_type: Optional[str] = None


class FileUploadOptions(BaseModel):
    """Options for uploading a file."""

    purpose: Optional[str] = None
    mime_type: Optional[str] = None


class FileListResponse(BaseModel):
    files: List[File]
    total: int
