"""Utility modules for the TaskForceAI client."""

from .http_helpers import error_from_exception, error_from_response, parse_error_detail, with_timeout

__all__ = [
    "error_from_exception",
    "error_from_response",
    "parse_error_detail",
    "with_timeout",
]
