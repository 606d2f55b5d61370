"""Task status model and the polling controller."""

from taskforceai.tasks.polling import fetch_task_status, wait_for_completion
from taskforceai.tasks.status import StatusTracker, TaskState, TaskStatus, parse_task_status

__all__ = [
    "StatusTracker",
    "TaskState",
    "TaskStatus",
    "fetch_task_status",
    "parse_task_status",
    "wait_for_completion",
]
