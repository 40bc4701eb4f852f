"""Mapping of Bluesky posts to source records."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from bsky_stream.api.base import Post
from bsky_stream.api.client import format_timestamp, parse_timestamp
from bsky_stream.config import StreamConfig

# post property used as an offset in source records
OFFSET_FIELD = "createdAt"

# a single stream has a single, unnamed partition
SOURCE_PARTITION = None

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class SourceRecord:
    """A post ready to hand to a sink, with its resume cursor."""

    partition: dict | None
    offset: dict
    topic: str
    timestamp: int
    value: dict = field(default_factory=dict)

    @property
    def created_at(self) -> str:
        return self.offset[OFFSET_FIELD]


def create_source_offset(post: Post) -> dict:
    return {OFFSET_FIELD: post.created_at}


class RecordFactory:
    """Builds SourceRecords for the configured topic."""

    def __init__(self, config: StreamConfig):
        self.topic = config.topic

    def create_record(self, post: Post) -> SourceRecord:
        created = parse_timestamp(post.created_at)
        return SourceRecord(
            partition=SOURCE_PARTITION,
            offset=create_source_offset(post),
            topic=self.topic,
            timestamp=(created - EPOCH) // timedelta(milliseconds=1),
            value=self.create_value(post, format_timestamp(created)),
        )

    def create_records(self, posts: list[Post]) -> list[SourceRecord]:
        return [self.create_record(post) for post in posts]

    @staticmethod
    def create_value(post: Post, created_at: str) -> dict:
        author = {"handle": post.handle}
        if post.display_name:
            author["displayName"] = post.display_name
        if post.avatar:
            author["avatar"] = post.avatar

        return {
            "id": {"uri": post.uri, "cid": post.cid},
            "text": post.text,
            "langs": list(post.langs),
            "createdAt": created_at,
            "author": author,
        }
