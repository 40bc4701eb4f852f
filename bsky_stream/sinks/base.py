"""Abstract base class for record sinks."""

from abc import ABC, abstractmethod


class RecordSink(ABC):
    """Abstract base class for record sinks."""

    @abstractmethod
    def write(self, records: list) -> int:
        """Write records to the sink.

        Args:
            records: SourceRecords in emission order

        Returns:
            Number of records written
        """
        pass

    def close(self):
        """Release any resources held by the sink."""
        pass
