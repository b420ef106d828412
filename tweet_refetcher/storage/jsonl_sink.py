"""JSON-lines storage for refetched tweets."""

import logging
import os
from typing import List

from tweet_refetcher.storage.data_sink import DataSink

logger = logging.getLogger(__name__)


class JsonlSink(DataSink):
    """Append-only JSON-lines file implementation of the DataSink interface."""

    def __init__(self, path: str):
        """
        Initialize the sink with a file path.

        Args:
            path: Path to the output file
        """
        self.path = path
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the directory for the output file exists."""
        directory = os.path.dirname(self.path)
        if directory:
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create output directory {directory}: {e}")

    def append(self, payloads: List[str]) -> int:
        """
        Append payloads to the end of the file, one per line.

        The file is created if missing and never truncated.

        Args:
            payloads: Annotated tweet JSON strings

        Returns:
            Number of payloads appended (0 on I/O failure)
        """
        if not payloads:
            return 0

        try:
            with open(self.path, "a", encoding="utf-8", newline="\n") as file:
                for payload in payloads:
                    file.write(payload)
                    file.write("\n")
        except OSError as e:
            logger.error(f"Failed to append {len(payloads)} tweets to {self.path}: {e}")
            return 0

        logger.info(f"Appended {len(payloads)} tweets to {self.path}")
        return len(payloads)
