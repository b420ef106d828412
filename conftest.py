"""Project-level pytest configuration and shared fixtures."""

import json
from typing import Callable, Iterable, List, Optional, Set

import pytest

from tweet_refetcher.errors import LookupFailedError
from tweet_refetcher.models.tweet import LookupResult, RateLimitStatus

PLENTY_OF_BUDGET = RateLimitStatus(remaining=800, seconds_until_reset=600)


class FakeTwitterClient:
    """
    Stand-in for TwitterClient that answers lookups from memory.

    Each looked-up ID comes back as a small tweet object. Batches whose
    1-based position is in ``fail_batches`` raise LookupFailedError.
    """

    def __init__(
        self,
        fail_batches: Iterable[int] = (),
        rate_limit: Optional[RateLimitStatus] = PLENTY_OF_BUDGET,
        failure_rate_limit: Optional[RateLimitStatus] = None,
    ):
        self.fail_batches: Set[int] = set(fail_batches)
        self.rate_limit = rate_limit
        self.failure_rate_limit = failure_rate_limit
        self.batches: List[List[int]] = []

    async def lookup(self, tweet_ids):
        self.batches.append(list(tweet_ids))
        if len(self.batches) in self.fail_batches:
            raise LookupFailedError(
                "HTTP 503: Over capacity", rate_limit=self.failure_rate_limit, status=503
            )
        payloads = [
            json.dumps({"id": tweet_id, "id_str": str(tweet_id), "retweet_count": 3}, separators=(",", ":"))
            for tweet_id in tweet_ids
        ]
        return LookupResult(payloads=payloads, rate_limit=self.rate_limit)


@pytest.fixture
def fake_client() -> Callable[..., FakeTwitterClient]:
    """Factory for FakeTwitterClient instances."""
    return FakeTwitterClient


@pytest.fixture
def seed_file(tmp_path) -> Callable[[Iterable[str]], str]:
    """Write the given lines to a seed tweet file and return its path."""

    def _write(lines: Iterable[str]) -> str:
        path = tmp_path / "tweets.json"
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return str(path)

    return _write
