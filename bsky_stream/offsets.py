"""Offset storage for resuming a stream after restart.

Offsets are kept per source partition in a JSON file. Partitions are keyed
by their JSON encoding, so the single unnamed partition is stored under
``"null"``.
"""

import json
from datetime import datetime
from pathlib import Path

from bsky_stream.logger import setup_logger

logger = setup_logger()

DEFAULT_STATE_FILE = "bluesky_offsets.json"
STATE_VERSION = 1


def partition_key(partition: dict | None) -> str:
    """JSON key under which a partition's offset is stored."""
    return json.dumps(partition, sort_keys=True)


class OffsetStore:
    """Persists the last committed offset for each source partition."""

    def __init__(self, state_file: str = DEFAULT_STATE_FILE):
        """Initialize offset store.

        Args:
            state_file: Path to the state file
        """
        self.state_file = state_file
        self._state: dict = {}
        self._load()

    def _load(self):
        """Load state from file, starting empty if it is missing or unreadable."""
        if not Path(self.state_file).exists():
            self._state = {"version": STATE_VERSION, "offsets": {}}
            return

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not load offsets: {e}")
            self._state = {"version": STATE_VERSION, "offsets": {}}
            return

        if not isinstance(data, dict) or not isinstance(data.get("offsets"), dict):
            logger.warning(f"Ignoring malformed offsets file {self.state_file}")
            self._state = {"version": STATE_VERSION, "offsets": {}}
            return

        self._state = data

    def _save(self):
        """Save state to file."""
        self._state["updated_at"] = datetime.now().isoformat()
        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2)
        logger.debug(f"Saved offsets to {self.state_file}")

    def get_offset(self, partition: dict | None = None) -> dict | None:
        """Get the last committed offset for a partition.

        Returns:
            Offset dict (e.g. {"createdAt": "..."}) or None if nothing committed
        """
        stored = self._state["offsets"].get(partition_key(partition))
        if not stored:
            return None
        return {k: v for k, v in stored.items() if k != "updated_at"}

    def commit(self, records: list) -> int:
        """Commit the offsets of emitted records.

        The last record for each partition wins, as records are emitted in
        chronological order.

        Args:
            records: SourceRecords that were written to the sink

        Returns:
            Number of partitions updated
        """
        latest = {}
        for record in records:
            latest[partition_key(record.partition)] = record.offset

        if not latest:
            return 0

        now = datetime.now().isoformat()
        for key, offset in latest.items():
            self._state["offsets"][key] = {**offset, "updated_at": now}
        self._save()
        logger.debug(f"Committed offsets for {len(latest)} partition(s)")
        return len(latest)

    def clear(self, partition: dict | None = None):
        """Forget the offset for a partition.

        Args:
            partition: Partition to clear
        """
        key = partition_key(partition)
        if key in self._state["offsets"]:
            del self._state["offsets"][key]
            self._save()
            logger.info(f"Cleared offset for partition {key}")
