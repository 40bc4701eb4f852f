"""Connector configuration: Bluesky credentials, search and polling settings."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from bsky_stream.errors import BlueskyError

# Connector property names
IDENTITY = "bluesky.identity"
APP_PASSWORD = "bluesky.password"
SEARCH_TERM = "bluesky.searchterm"
POLL_INTERVAL_MS = "bluesky.poll.ms"
TOPIC = "bluesky.topic"

# Environment variable names
ENV_HANDLE = "BLUESKY_HANDLE"
ENV_PASSWORD = "BLUESKY_PASSWORD"
ENV_SEARCH_TERM = "BLUESKY_SEARCH_TERM"
ENV_POLL_MS = "BLUESKY_POLL_MS"
ENV_TOPIC = "BLUESKY_TOPIC"

DEFAULT_SEARCH_TERM = "bluesky"
DEFAULT_TOPIC = "bluesky"
DEFAULT_POLL_INTERVAL_MS = 60_000  # one minute
# Searching more often than this risks the API's rate limits
MIN_POLL_INTERVAL_MS = 30_000


class ConfigurationError(BlueskyError, ValueError):
    """Raised when the connector configuration is missing or invalid."""


def _parse_int(name: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class StreamConfig:
    """Validated settings for one Bluesky search stream."""

    identity: str
    password: str = field(repr=False)
    search_term: str = DEFAULT_SEARCH_TERM
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    topic: str = DEFAULT_TOPIC

    def __post_init__(self):
        if not self.identity:
            raise ConfigurationError(
                f"Bluesky identity is required (set {ENV_HANDLE} or {IDENTITY})"
            )
        if not self.password:
            raise ConfigurationError(
                f"Bluesky app password is required (set {ENV_PASSWORD} or {APP_PASSWORD})"
            )
        if not self.search_term:
            raise ConfigurationError("Search term must not be empty")
        if not self.topic:
            raise ConfigurationError("Topic must not be empty")
        if self.poll_interval_ms < MIN_POLL_INTERVAL_MS:
            raise ConfigurationError(
                f"Poll interval must be at least {MIN_POLL_INTERVAL_MS} ms, "
                f"got {self.poll_interval_ms}"
            )

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000

    @classmethod
    def from_env(cls, **overrides) -> "StreamConfig":
        """Build config from environment variables (and a .env file, if present).

        Args:
            **overrides: Field values that take precedence over the environment.
                None values are ignored.
        """
        load_dotenv()

        values = {
            "identity": os.environ.get(ENV_HANDLE, ""),
            "password": os.environ.get(ENV_PASSWORD, ""),
            "search_term": os.environ.get(ENV_SEARCH_TERM) or DEFAULT_SEARCH_TERM,
            "poll_interval_ms": os.environ.get(ENV_POLL_MS) or DEFAULT_POLL_INTERVAL_MS,
            "topic": os.environ.get(ENV_TOPIC) or DEFAULT_TOPIC,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["poll_interval_ms"] = _parse_int(ENV_POLL_MS, values["poll_interval_ms"])
        return cls(**values)

    @classmethod
    def from_properties(cls, props: dict) -> "StreamConfig":
        """Build config from connector properties such as ``bluesky.identity``."""
        return cls(
            identity=props.get(IDENTITY, ""),
            password=props.get(APP_PASSWORD, ""),
            search_term=props.get(SEARCH_TERM, DEFAULT_SEARCH_TERM),
            poll_interval_ms=_parse_int(
                POLL_INTERVAL_MS, props.get(POLL_INTERVAL_MS, DEFAULT_POLL_INTERVAL_MS)
            ),
            topic=props.get(TOPIC, DEFAULT_TOPIC),
        )

    def to_properties(self) -> dict:
        """Connector properties equivalent to this config."""
        return {
            IDENTITY: self.identity,
            APP_PASSWORD: self.password,
            SEARCH_TERM: self.search_term,
            POLL_INTERVAL_MS: str(self.poll_interval_ms),
            TOPIC: self.topic,
        }
