"""Refetch engine: looks seed tweets up again in batches and appends fresh copies."""

import enum
import logging
from contextlib import nullcontext
from typing import Callable, List, Optional, Tuple

import tqdm

from tweet_refetcher.collector.batching import batch_count, partition
from tweet_refetcher.collector.rate_limiter import RateLimiter
from tweet_refetcher.config import MAX_LOOKUP_BATCH_SIZE
from tweet_refetcher.errors import InputFileError, LookupFailedError
from tweet_refetcher.models.mapping import annotate_payload, read_tweet_ids, twitter_timestamp
from tweet_refetcher.models.tweet import RateLimitStatus, RefetchSummary
from tweet_refetcher.storage.data_sink import DataSink
from tweet_refetcher.twitter_client import TwitterClient

logger = logging.getLogger(__name__)


class RefetchState(enum.Enum):
    """Stages of a refetch run."""

    INIT = "init"
    EXTRACTING_IDENTIFIERS = "extracting_identifiers"
    REFETCHING_BATCHES = "refetching_batches"
    WRITING = "writing"
    DONE = "done"
    FATAL_ABORT = "fatal_abort"


class Refetcher:
    """
    Runner for refetching a file of seed tweets.

    Batches are looked up strictly one after another, since the rate limit
    budget is a single counter shared by every call.
    """

    def __init__(
        self,
        client: TwitterClient,
        rate_limiter: RateLimiter,
        data_sink: DataSink,
        batch_size: int = MAX_LOOKUP_BATCH_SIZE,
        prometheus_exporter=None,
        show_progress: bool = False,
        timestamp_factory: Callable[[], str] = twitter_timestamp,
    ):
        """
        Initialize the refetcher.

        Args:
            client: Initialized Twitter client
            rate_limiter: Rate limiter consulted after every lookup
            data_sink: Sink the annotated tweets are appended to
            batch_size: Maximum number of IDs per lookup
            prometheus_exporter: Optional Prometheus exporter for metrics
            show_progress: Whether to show a progress bar over batches
            timestamp_factory: Produces the collected_at value for a batch
        """
        self.client = client
        self.rate_limiter = rate_limiter
        self.data_sink = data_sink
        self.batch_size = batch_size
        self.prometheus_exporter = prometheus_exporter
        self.show_progress = show_progress
        self.timestamp_factory = timestamp_factory
        self.state = RefetchState.INIT

    async def run(self, input_path: str) -> RefetchSummary:
        """
        Refetch every tweet named in the seed file and append the results.

        Args:
            input_path: File of seed tweets, one JSON object per line

        Returns:
            Summary of the run

        Raises:
            InputFileError: If the seed file cannot be read
        """
        self.state = RefetchState.EXTRACTING_IDENTIFIERS
        try:
            tweet_ids = read_tweet_ids(input_path)
        except InputFileError:
            self.state = RefetchState.FATAL_ABORT
            raise

        summary = RefetchSummary(ids_read=len(tweet_ids))
        payloads = await self.refetch(tweet_ids, summary)

        self.state = RefetchState.WRITING
        logger.info(f"Appending {len(payloads)} refetched tweets")
        written = self.data_sink.append(payloads)
        summary.tweets_written = written
        if self.prometheus_exporter and written:
            self.prometheus_exporter.record_tweets_written(written)

        self.state = RefetchState.DONE
        logger.info(
            f"Refetch complete: {summary.tweets_refetched} of {summary.ids_read} tweets refetched "
            f"in {summary.batches_requested} batches ({summary.batches_failed} failed), "
            f"{summary.tweets_written} written"
        )
        return summary

    async def refetch(self, tweet_ids: List[int], summary: RefetchSummary) -> List[str]:
        """
        Look up every batch of IDs and collect the annotated tweets.

        Args:
            tweet_ids: Tweet IDs in input order
            summary: Summary updated in place

        Returns:
            Annotated tweet JSON, in batch order then response order
        """
        self.state = RefetchState.REFETCHING_BATCHES
        logger.info(f"Refetching {len(tweet_ids)} tweets...")

        refetched: List[str] = []
        batches = partition(tweet_ids, self.batch_size)
        total = batch_count(len(tweet_ids), self.batch_size)

        for batch in tqdm.tqdm(batches, total=total, desc="Refetching", disable=not self.show_progress):
            summary.batches_requested += 1
            payloads, rate_limit = await self._lookup_batch(batch)
            if payloads is None:
                summary.batches_failed += 1
            else:
                refetched.extend(payloads)
                summary.tweets_refetched += len(payloads)
            logger.debug(f"Refetched {len(batch)} tweets...")

            if rate_limit is not None and self.prometheus_exporter:
                self.prometheus_exporter.set_rate_limit_remaining(rate_limit.remaining)

            waited = await self.rate_limiter.maybe_pause(rate_limit)
            if waited:
                summary.pauses += 1
                summary.seconds_paused += waited
                if self.prometheus_exporter:
                    self.prometheus_exporter.record_pause(waited)

        logger.info(f"Refetched {len(refetched)} tweets")
        return refetched

    async def _lookup_batch(
        self, batch: List[int]
    ) -> Tuple[Optional[List[str]], Optional[RateLimitStatus]]:
        """
        Look up one batch and annotate the results.

        Returns:
            Tuple of (annotated payloads or None on failure, rate limit status or None)
        """
        timer = self.prometheus_exporter.time_request() if self.prometheus_exporter else None
        try:
            with timer if timer else nullcontext():
                result = await self.client.lookup(batch)
        except LookupFailedError as e:
            logger.error(f"Failed to refetch batch of {len(batch)} tweets: {e}")
            logger.info("Attempting to continue...")
            if self.prometheus_exporter:
                self.prometheus_exporter.record_lookup("failure")
                self.prometheus_exporter.record_api_error(str(e.status) if e.status else "connection")
            return None, e.rate_limit

        timestamp = self.timestamp_factory()
        annotated = []
        for raw_json in result.payloads:
            try:
                annotated.append(annotate_payload(raw_json, timestamp))
            except ValueError as e:
                logger.warning(f"Skipping unannotatable tweet: {e}")

        if self.prometheus_exporter:
            self.prometheus_exporter.record_lookup("success")
            self.prometheus_exporter.record_tweets_refetched(len(annotated))

        return annotated, result.rate_limit
