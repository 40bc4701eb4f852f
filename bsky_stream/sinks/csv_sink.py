"""CSV file sink."""

import csv
import json
from pathlib import Path

from .base import RecordSink

FIELDNAMES = [
    "topic",
    "timestamp",
    "uri",
    "cid",
    "handle",
    "displayName",
    "avatar",
    "createdAt",
    "text",
    "langs",
]


def record_to_row(record) -> dict:
    """Flatten a SourceRecord into a CSV row."""
    value = record.value
    author = value.get("author", {})
    return {
        "topic": record.topic,
        "timestamp": record.timestamp,
        "uri": value["id"]["uri"],
        "cid": value["id"]["cid"],
        "handle": author.get("handle", ""),
        "displayName": author.get("displayName", ""),
        "avatar": author.get("avatar", ""),
        "createdAt": value["createdAt"],
        "text": value["text"],
        # Serialize list fields to JSON for CSV compatibility
        "langs": json.dumps(value.get("langs", [])),
    }


class CSVSink(RecordSink):
    """Appends records to a CSV file."""

    def __init__(self, filename: str = "bluesky_posts.csv"):
        """Initialize CSV sink.

        Args:
            filename: Path to CSV file
        """
        self.filename = filename

    def write(self, records: list) -> int:
        """Append records to the CSV file, writing a header for a new file.

        Args:
            records: SourceRecords to write

        Returns:
            Number of records written
        """
        if not records:
            return 0

        path = Path(self.filename)
        new_file = not path.exists() or path.stat().st_size == 0
        rows = [record_to_row(record) for record in records]

        with open(self.filename, "a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES, extrasaction="ignore")
            if new_file:
                writer.writeheader()
            writer.writerows(rows)

        return len(rows)
