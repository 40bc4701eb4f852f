"""Thread-safe holding area between the poll task and the consumer."""

import threading

from bsky_stream.api.base import Post


class FetchBuffer:
    """Posts fetched from Bluesky that have not yet been collected."""

    def __init__(self):
        self._lock = threading.Lock()
        self._posts: list[Post] = []

    def append(self, posts: list[Post]):
        """Add posts to the tail, preserving their order."""
        if not posts:
            return
        with self._lock:
            self._posts.extend(posts)

    def drain(self) -> list[Post]:
        """Remove and return everything currently buffered."""
        with self._lock:
            posts = self._posts
            self._posts = []
        return posts

    def __len__(self) -> int:
        with self._lock:
            return len(self._posts)
