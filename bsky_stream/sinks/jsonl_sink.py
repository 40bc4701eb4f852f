"""JSON Lines sink, writing one record per line to a file or stdout."""

import json
import sys
from dataclasses import asdict

from .base import RecordSink


class JSONLinesSink(RecordSink):
    """Writes records as JSON objects, one per line."""

    def __init__(self, filename: str = "-"):
        """Initialize JSON Lines sink.

        Args:
            filename: Output path, or "-" for stdout
        """
        self.filename = filename

    def write(self, records: list) -> int:
        if not records:
            return 0

        lines = [json.dumps(asdict(record), ensure_ascii=False) for record in records]
        if self.filename == "-":
            for line in lines:
                sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            with open(self.filename, "a", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")

        return len(lines)
