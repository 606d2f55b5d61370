"""Task status model and wire decoding.

A ``TaskStatus`` is created fresh for every fetch or stream event and never
mutated. ``parse_task_status`` is the single entry point from wire payloads;
it tolerates unknown fields and unknown state strings so that new server-side
states do not break older clients.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from taskforceai.core.errors import DecodeError

logger = structlog.get_logger(__name__)

_ID_KEYS = ("id", "taskId", "task_id")
_STATE_KEYS = ("state", "status")
_UPDATED_AT_KEYS = ("updated_at", "updatedAt")

# Older service releases report "processing" for running tasks
_STATE_ALIASES = {
    "processing": "running",
    "in_progress": "running",
    "queued": "pending",
    "canceled": "cancelled",
}


class TaskState(str, Enum):
    """Lifecycle state of a task. ``UNKNOWN`` covers states this client predates."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, raw: str) -> TaskState:
        """Map a wire state string, falling back to UNKNOWN."""
        normalized = raw.strip().lower()
        normalized = _STATE_ALIASES.get(normalized, normalized)
        if normalized == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED})


class TaskStatus(BaseModel):
    """Snapshot of a task's state at one observation.

    ``raw_state`` keeps the server's spelling so an ``UNKNOWN`` state can
    still be inspected. ``result`` is only set for completed tasks and
    ``error`` only for failed ones.
    """

    model_config = ConfigDict(frozen=True)

    task_id: str
    state: TaskState
    raw_state: str
    result: str | None = None
    error: str | None = None
    updated_at: datetime | None = None
    warnings: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_unknown(self) -> bool:
        return self.state is TaskState.UNKNOWN

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the wire shape accepted by parse_task_status."""
        payload: dict[str, Any] = {"id": self.task_id, "state": self.raw_state}
        if self.result is not None:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        if self.updated_at is not None:
            payload["updated_at"] = self.updated_at.isoformat()
        if self.warnings is not None:
            payload["warnings"] = list(self.warnings)
        if self.metadata is not None:
            payload["metadata"] = dict(self.metadata)
        return payload


def _first(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _load(raw: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Status payload is not valid UTF-8: {e}") from e
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Status payload is not valid JSON: {e}") from e
    if not isinstance(raw, Mapping):
        raise DecodeError(f"Status payload must be a JSON object, got {type(raw).__name__}")
    return raw


def parse_task_status(raw: Mapping[str, Any] | str | bytes) -> TaskStatus:
    """Decode a status payload.

    Args:
        raw: Parsed JSON object, or JSON text / bytes

    Returns:
        A fresh TaskStatus

    Raises:
        DecodeError: If the payload is malformed or lacks the id or state field
    """
    payload = _load(raw)

    task_id = _first(payload, _ID_KEYS)
    if task_id is None or task_id == "":
        raise DecodeError("Status payload is missing the task id", missing_field="id")

    raw_state = _first(payload, _STATE_KEYS)
    if raw_state is None:
        raise DecodeError("Status payload is missing the state", missing_field="state")
    if not isinstance(raw_state, str):
        raise DecodeError(f"Status state must be a string, got {type(raw_state).__name__}")

    state = TaskState.from_wire(raw_state)
    if state is TaskState.UNKNOWN:
        logger.debug("task_state_unknown", task_id=task_id, raw_state=raw_state)

    result = payload.get("result") if state is TaskState.COMPLETED else None
    error = payload.get("error") if state is TaskState.FAILED else None

    try:
        return TaskStatus(
            task_id=task_id,
            state=state,
            raw_state=raw_state,
            result=result,
            error=error,
            updated_at=_first(payload, _UPDATED_AT_KEYS),
            warnings=payload.get("warnings"),
            metadata=payload.get("metadata"),
        )
    except ValidationError as e:
        raise DecodeError(f"Invalid status payload: {e}") from e


class StatusTracker:
    """Keeps the latest observation of one task.

    ``updated_at`` should never move backwards for a task. The service is
    the only party that can enforce that, so a regression is logged rather
    than rejected.
    """

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self.latest: TaskStatus | None = None
        self.observations = 0

    def observe(self, status: TaskStatus) -> TaskStatus:
        """Record a new observation and return it unchanged."""
        previous = self.latest
        if (
            previous is not None
            and previous.updated_at is not None
            and status.updated_at is not None
            and _comparable(previous.updated_at, status.updated_at)
            and status.updated_at < previous.updated_at
        ):
            logger.warning(
                "task_status_regressed",
                task_id=self.task_id,
                previous_updated_at=previous.updated_at.isoformat(),
                updated_at=status.updated_at.isoformat(),
            )
        if status.task_id != self.task_id:
            logger.warning(
                "task_status_id_mismatch",
                task_id=self.task_id,
                received_task_id=status.task_id,
            )
        self.latest = status
        self.observations += 1
        return status

    @property
    def finished(self) -> bool:
        return self.latest is not None and self.latest.is_terminal


def _comparable(a: datetime, b: datetime) -> bool:
    # Naive and aware datetimes cannot be ordered
    return (a.tzinfo is None) == (b.tzinfo is None)
