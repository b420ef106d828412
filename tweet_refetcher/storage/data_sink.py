"""Defines the DataSink protocol for refetched tweet output."""

from typing import List, Protocol


class DataSink(Protocol):
    """
    A protocol that defines the interface for all refetched tweet sinks.

    Sinks only ever add records; existing content is never rewritten.
    """

    def append(self, payloads: List[str]) -> int:
        """
        Append annotated tweet JSON payloads to the storage backend.

        Args:
            payloads: Annotated tweet JSON strings, one per tweet.

        Returns:
            The number of payloads successfully appended.
        """
        ...
