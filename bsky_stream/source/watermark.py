"""Monotonic watermark over post creation timestamps."""

import threading

from bsky_stream.api.client import parse_timestamp
from bsky_stream.logger import setup_logger

logger = setup_logger()


class Watermark:
    """Creation timestamp of the newest post processed so far.

    Seeded once from the restored cursor and only ever moved forward. There
    is no rollback; replaying requires a new instance with an earlier seed.
    """

    def __init__(self, initial: str | None = None):
        self._lock = threading.Lock()
        self._value = initial or None

    @property
    def value(self) -> str | None:
        with self._lock:
            return self._value

    def advance_to(self, timestamp: str) -> bool:
        """Move the watermark to ``timestamp`` if it is newer.

        Returns:
            True if the watermark moved, False if the timestamp was not newer
        """
        new = parse_timestamp(timestamp)
        with self._lock:
            if self._value is not None:
                try:
                    current = parse_timestamp(self._value)
                except ValueError:
                    logger.warning(f"Replacing unparseable watermark {self._value}")
                else:
                    if new <= current:
                        return False
            self._value = timestamp
            return True

    def __repr__(self):
        return f"Watermark({self.value!r})"
