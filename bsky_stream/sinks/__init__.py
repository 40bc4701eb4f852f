"""Sinks for emitted Bluesky records."""

from .base import RecordSink
from .csv_sink import CSVSink
from .jsonl_sink import JSONLinesSink

__all__ = ["RecordSink", "CSVSink", "JSONLinesSink"]
