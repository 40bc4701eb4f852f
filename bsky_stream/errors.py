"""Exceptions and the latched error slot shared between background tasks and the consumer."""

import threading


class BlueskyError(Exception):
    """Base class for errors raised while talking to Bluesky."""


class AuthError(BlueskyError):
    """Raised when logging in or refreshing the session fails."""


class TransportError(BlueskyError):
    """Raised when a search page cannot be fetched or decoded."""


class ParseError(BlueskyError):
    """Raised when a single post in a search page is malformed."""


class ErrorChannel:
    """Holds the most recent fatal error raised by a background task.

    Once recorded, the error is surfaced by every ``check()`` until
    ``clear()`` is called. A later success does not clear it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._error: Exception | None = None

    def record(self, error: Exception):
        with self._lock:
            self._error = error

    @property
    def error(self) -> Exception | None:
        with self._lock:
            return self._error

    def check(self):
        """Raise an AuthError caused by the recorded error, leaving it in place.

        A new exception is raised on each call so the stored one does not
        collect a traceback per poll.
        """
        error = self.error
        if error is not None:
            raise AuthError(f"Bluesky session is unusable: {error}") from error

    def clear(self):
        with self._lock:
            self._error = None
