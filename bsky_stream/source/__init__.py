"""Streaming source built on the Bluesky API client."""

from .buffer import FetchBuffer
from .fetcher import BlueskyDataFetcher
from .records import RecordFactory, SourceRecord
from .task import BlueskySourceConnector, BlueskySourceTask
from .watermark import Watermark

__all__ = [
    "BlueskyDataFetcher",
    "BlueskySourceConnector",
    "BlueskySourceTask",
    "FetchBuffer",
    "RecordFactory",
    "SourceRecord",
    "Watermark",
]
