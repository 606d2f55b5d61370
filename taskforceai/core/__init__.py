"""Configuration, errors and logging for the TaskForceAI client."""

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
from taskforceai.core.logging import setup_logging

__all__ = [
    "ClientError",
    "ClientOptions",
    "DecodeError",
    "InvalidArgumentError",
    "InvalidConfigError",
    "PollingOptions",
    "StreamDisconnectedError",
    "StreamOptions",
    "TaskTimeoutError",
    "TransportError",
    "setup_logging",
]
