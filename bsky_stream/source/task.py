"""Source task and connector: the host-facing entry points of a stream."""

import httpx

from bsky_stream import __version__
from bsky_stream.config import StreamConfig
from bsky_stream.logger import setup_logger
from bsky_stream.offsets import OffsetStore
from .fetcher import BlueskyDataFetcher
from .records import OFFSET_FIELD, SOURCE_PARTITION, RecordFactory, SourceRecord

logger = setup_logger()


class BlueskySourceTask:
    """Emits records for new Bluesky posts, resuming from stored offsets."""

    def __init__(self):
        self.fetcher: BlueskyDataFetcher | None = None
        self.record_factory: RecordFactory | None = None

    def start(
        self,
        config: StreamConfig,
        offset_store: OffsetStore | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Restore the last offset, log in and start polling.

        Args:
            config: Validated stream configuration
            offset_store: Store to restore the last offset from. None means
                this is the first time the stream has run.
            http_client: HTTP client for Bluesky requests (mainly for tests)

        Raises:
            AuthError: If logging in to Bluesky fails
        """
        logger.info(f"Starting task {config}")
        self.record_factory = RecordFactory(config)
        self.fetcher = BlueskyDataFetcher(
            config, self.get_offset(offset_store), http_client=http_client
        )
        self.fetcher.start()

    def poll(self) -> list[SourceRecord]:
        """Collect records for posts fetched since the last poll.

        Raises:
            AuthError: If the background session refresh has failed
            RuntimeError: If the task has not been started
        """
        if self.fetcher is None or self.record_factory is None:
            raise RuntimeError("Task has not been started")
        posts = self.fetcher.get_posts()
        return self.record_factory.create_records(posts)

    def stop(self):
        logger.info("Stopping task")
        if self.fetcher is not None:
            self.fetcher.close()
        self.fetcher = None
        self.record_factory = None

    def version(self) -> str:
        return __version__

    @staticmethod
    def get_offset(offset_store: OffsetStore | None) -> str | None:
        """Timestamp of the last committed post, or None on first run."""
        if offset_store is None:
            logger.debug("No offset store - assuming that this is the first time the task has run")
            return None

        offset = offset_store.get_offset(SOURCE_PARTITION)
        if offset is None:
            logger.debug("No persisted offset available")
            return None

        timestamp = offset.get(OFFSET_FIELD)
        logger.debug(f"Returning persisted offset {timestamp}")
        return timestamp


class BlueskySourceConnector:
    """Validates connector properties and hands them to a single task."""

    def __init__(self):
        self.config: StreamConfig | None = None

    def start(self, props: dict):
        """Validate the connector properties and keep the resulting config.

        Raises:
            ConfigurationError: If the properties are invalid
        """
        config = StreamConfig.from_properties(props)
        logger.info(f"Starting connector {config}")
        self.config = config

    def task_class(self) -> type:
        return BlueskySourceTask

    def task_configs(self, max_tasks: int) -> list[dict]:
        if max_tasks > 1:
            logger.warning(
                f"Only one task is supported. Ignoring max_tasks which is set to {max_tasks}"
            )
        if self.config is None:
            raise RuntimeError("Connector has not been started")
        # defaults are filled in so the task sees the complete property set
        return [self.config.to_properties()]

    def stop(self):
        logger.info("Stopping connector")

    def version(self) -> str:
        return __version__
