"""Data models for refetched tweets and rate limit snapshots."""

from dataclasses import dataclass, field
from typing import List, Optional

# 64-bit signed range accepted for tweet identifiers
MIN_TWEET_ID = -(2 ** 63)
MAX_TWEET_ID = 2 ** 63 - 1


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the remote rate limit window after one API call."""

    remaining: int
    seconds_until_reset: int
    limit: Optional[int] = None
    reset_epoch: Optional[int] = None


@dataclass
class LookupResult:
    """Raw tweet payloads returned by one bulk lookup, plus rate limit status."""

    payloads: List[str] = field(default_factory=list)
    rate_limit: Optional[RateLimitStatus] = None


@dataclass
class RefetchSummary:
    """Counters describing one refetch run."""

    ids_read: int = 0
    batches_requested: int = 0
    batches_failed: int = 0
    tweets_refetched: int = 0
    tweets_written: int = 0
    pauses: int = 0
    seconds_paused: float = 0.0
