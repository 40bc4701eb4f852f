"""Background fetcher that polls Bluesky and buffers new posts."""

import threading

import httpx

from bsky_stream.api.base import Post
from bsky_stream.api.client import MAX_PAGE_SIZE, SearchPaginator
from bsky_stream.api.session import Credential, SessionManager
from bsky_stream.config import StreamConfig
from bsky_stream.errors import ErrorChannel
from bsky_stream.logger import setup_logger
from bsky_stream.scheduler import PeriodicTask
from .buffer import FetchBuffer
from .watermark import Watermark

logger = setup_logger()

# Delay before the first search after start()
INITIAL_POLL_DELAY = 5.0  # seconds


class BlueskyDataFetcher:
    """Polls Bluesky for a search term and holds posts until collected.

    Two periodic tasks run while the fetcher is started: the session refresh
    owned by SessionManager, and the search poll owned by this class. Failures
    in the refresh task are latched in ``errors`` and raised by the next
    ``get_posts()`` call.
    """

    def __init__(
        self,
        config: StreamConfig,
        offset: str | None = None,
        http_client: httpx.Client | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ):
        """Initialize data fetcher.

        Args:
            config: Validated stream configuration
            offset: createdAt timestamp of the last post emitted before a
                restart, or None if this is the first run
            http_client: HTTP client for Bluesky requests (mainly for tests)
            page_size: Maximum posts per search page
        """
        logger.info("Creating a Bluesky data fetcher")
        self.search_term = config.search_term
        self.poll_interval = config.poll_interval
        self.page_size = page_size

        self.errors = ErrorChannel()
        self.buffer = FetchBuffer()
        self._watermark = Watermark(offset)

        # credentials are not validated until start()
        self.session = SessionManager(
            Credential(config.identity, config.password),
            http_client=http_client,
            errors=self.errors,
        )
        self.paginator = SearchPaginator(self.session)

        self._lock = threading.Lock()
        self._poll_task: PeriodicTask | None = None

    @property
    def watermark(self) -> str | None:
        return self._watermark.value

    @property
    def running(self) -> bool:
        return self._poll_task is not None

    def start(self):
        """Log in and start polling.

        Raises:
            AuthError: If logging in to Bluesky fails
        """
        logger.debug("Starting Bluesky fetcher")
        with self._lock:
            self.session.login()

            if self._poll_task is None:
                self._poll_task = PeriodicTask(
                    "bluesky-posts-poller",
                    self.poll_once,
                    period=self.poll_interval,
                    initial_delay=INITIAL_POLL_DELAY,
                )
                self._poll_task.start()

    def poll_once(self) -> int:
        """Run one search cycle and buffer whatever it finds.

        Returns:
            Number of posts added to the buffer
        """
        if self.errors.error is not None:
            logger.debug("Skipping poll while the Bluesky session is broken")
            return 0

        posts = self.paginator.fetch_new_posts(
            self.search_term, self._watermark, self.page_size
        )
        if posts:
            self.buffer.append(posts)
            logger.info(f"Fetched {len(posts)} new posts for {self.search_term}")
        logger.debug(f"{len(self.buffer)} posts waiting to be collected")
        return len(posts)

    def get_posts(self) -> list[Post]:
        """Collect all buffered posts, oldest first.

        Raises:
            AuthError: If the background session refresh has failed
        """
        self.errors.check()
        return self.buffer.drain()

    def stop(self):
        """Stop polling, log out and reset the error state."""
        logger.debug("Stopping Bluesky fetcher")
        with self._lock:
            if self._poll_task is not None:
                self._poll_task.stop()
                self._poll_task = None

            self.session.logout()
            self.errors.clear()

    def close(self):
        """Stop the fetcher and release its HTTP client."""
        self.stop()
        self.session.close()
