"""Configuration, defaults, and option structs for the TaskForceAI client.

Each struct documents its defaults in one place so the default-resolution
policy can be inspected and tested without a client. Bounds are checked by
``ensure_valid()`` which raises ``InvalidConfigError``; the client and the
controllers call it before doing any work.
"""

import os
from typing import Any

import dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from taskforceai.core.errors import InvalidConfigError

# Default configuration
DEFAULT_BASE_URL = "https://taskforceai.chat/api/developer"
DEFAULT_TIMEOUT = 30.0

# Polling defaults
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLL_ATTEMPTS = 60

# Streaming reconnect defaults
DEFAULT_MAX_RECONNECTS = 5
DEFAULT_BACKOFF_INITIAL = 0.5
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_BACKOFF_MAX = 8.0

# Environment variables read by ClientOptions.from_environment()
ENV_API_KEY = "TASKFORCEAI_API_KEY"
ENV_BASE_URL = "TASKFORCEAI_BASE_URL"
ENV_TIMEOUT = "TASKFORCEAI_TIMEOUT"
ENV_MOCK_MODE = "TASKFORCEAI_MOCK_MODE"

_TRUTHY = {"1", "true", "yes", "on"}


class ClientOptions(BaseModel):
    """Client construction options.

    Attributes:
        api_key: Credential attached to every request (required unless mock_mode)
        base_url: Service endpoint, trailing slash stripped
        timeout: Per-request deadline in seconds
        mock_mode: Replace the network transport with deterministic synthesis
    """

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    mock_mode: bool = False

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_environment(cls, **overrides: Any) -> "ClientOptions":
        """Create options from ``TASKFORCEAI_*`` environment variables.

        A ``.env`` file is loaded first. Explicit keyword overrides that are
        not None win over the environment.

        Args:
            **overrides: Field values that take precedence

        Returns:
            ClientOptions instance with detected configuration
        """
        dotenv.load_dotenv()

        values: dict[str, Any] = {}
        if api_key := os.environ.get(ENV_API_KEY):
            values["api_key"] = api_key
        if base_url := os.environ.get(ENV_BASE_URL):
            values["base_url"] = base_url
        if timeout := os.environ.get(ENV_TIMEOUT):
            try:
                values["timeout"] = float(timeout)
            except ValueError as e:
                msg = f"{ENV_TIMEOUT} must be a number of seconds, got {timeout!r}"
                raise InvalidConfigError(msg) from e
        if mock_mode := os.environ.get(ENV_MOCK_MODE):
            values["mock_mode"] = mock_mode.strip().lower() in _TRUTHY

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def has_api_key(self) -> bool:
        """Check if a non-blank API key is configured."""
        return bool(self.api_key and self.api_key.strip())

    def ensure_valid(self) -> "ClientOptions":
        """Raise InvalidConfigError unless the options can build a client."""
        if not self.mock_mode and not self.has_api_key:
            raise InvalidConfigError("API key is required when not in mock mode")
        if self.timeout <= 0:
            raise InvalidConfigError(f"timeout must be positive, got {self.timeout}")
        if not self.base_url:
            raise InvalidConfigError("base_url must not be empty")
        return self


class PollingOptions(BaseModel):
    """Polling cadence for wait_for_completion.

    Attributes:
        interval: Seconds to wait between status fetches (default 1.0)
        max_attempts: Upper bound on status fetches (default 60). There is
            no unlimited mode; zero or negative values are rejected.
    """

    model_config = ConfigDict(frozen=True)

    interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS

    def ensure_valid(self) -> "PollingOptions":
        """Raise InvalidConfigError for negative intervals or an unbounded budget."""
        if self.interval < 0:
            raise InvalidConfigError(f"interval must be >= 0, got {self.interval}")
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1 (unlimited polling is not supported), got {self.max_attempts}"
            raise InvalidConfigError(msg)
        return self


class StreamOptions(BaseModel):
    """Reconnect policy for status streams.

    The n-th consecutive reconnect waits
    ``min(backoff_initial * backoff_factor ** (n - 1), backoff_max)`` seconds.
    """

    model_config = ConfigDict(frozen=True)

    max_reconnects: int = DEFAULT_MAX_RECONNECTS
    backoff_initial: float = DEFAULT_BACKOFF_INITIAL
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    backoff_max: float = DEFAULT_BACKOFF_MAX

    def ensure_valid(self) -> "StreamOptions":
        """Raise InvalidConfigError for negative budgets or delays."""
        if self.max_reconnects < 0:
            raise InvalidConfigError(f"max_reconnects must be >= 0, got {self.max_reconnects}")
        if self.backoff_initial < 0 or self.backoff_max < 0:
            raise InvalidConfigError("backoff delays must be >= 0")
        if self.backoff_factor < 1:
            raise InvalidConfigError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        return self

    def backoff_delay(self, reconnect: int) -> float:
        """Delay before the given 1-based consecutive reconnect."""
        if reconnect < 1:
            return 0.0
        delay = self.backoff_initial * self.backoff_factor ** (reconnect - 1)
        return min(delay, self.backoff_max)
