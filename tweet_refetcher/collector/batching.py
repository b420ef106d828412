"""Partitioning of tweet IDs into lookup-sized batches."""

from typing import Iterator, List, Sequence


def partition(tweet_ids: Sequence[int], size: int) -> Iterator[List[int]]:
    """
    Split tweet IDs into consecutive batches of at most ``size`` IDs.

    Every batch but the last holds exactly ``size`` IDs. Order is preserved
    across and within batches.

    Args:
        tweet_ids: Tweet IDs in the order they should be requested
        size: Maximum batch size

    Raises:
        ValueError: If size is less than 1
    """
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")

    for start in range(0, len(tweet_ids), size):
        yield list(tweet_ids[start:start + size])


def batch_count(total: int, size: int) -> int:
    """Number of batches ``partition`` yields for ``total`` IDs."""
    return -(-total // size)
