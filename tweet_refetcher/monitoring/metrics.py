"""Prometheus metrics for monitoring the Tweet Refetcher."""

import logging
import time
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Define metrics
TWEETS_REFETCHED = Counter(
    "tweet_refetcher_tweets_refetched_total",
    "Total number of tweets refetched",
)

TWEETS_WRITTEN = Counter(
    "tweet_refetcher_tweets_written_total",
    "Total number of annotated tweets appended to the output file",
)

LOOKUP_OPERATIONS = Counter(
    "tweet_refetcher_lookup_operations_total",
    "Number of bulk lookup calls performed",
    ["outcome"],
)

API_ERRORS = Counter(
    "tweet_refetcher_api_errors_total",
    "Number of API errors encountered",
    ["error_type"],
)

RATE_LIMIT_REMAINING = Gauge(
    "tweet_refetcher_rate_limit_remaining",
    "Calls remaining in the current rate limit window",
)

RATE_LIMIT_PAUSE_SECONDS = Counter(
    "tweet_refetcher_rate_limit_pause_seconds_total",
    "Total seconds spent waiting for rate limit windows to reset",
)

REQUEST_DURATION = Histogram(
    "tweet_refetcher_request_duration_seconds",
    "Duration of API requests in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)


class PrometheusExporter:
    """Prometheus metrics exporter for the Tweet Refetcher."""

    def __init__(self, port: int = 8000):
        """
        Initialize the Prometheus exporter.

        Args:
            port: Port to expose metrics on
        """
        self.port = port
        self.server_started = False

    def start_server(self) -> None:
        """Start the Prometheus metrics server."""
        if not self.server_started:
            try:
                start_http_server(self.port)
                self.server_started = True
                logger.info(f"Started Prometheus metrics server on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus metrics server: {str(e)}")

    def record_lookup(self, outcome: str) -> None:
        """
        Record a bulk lookup call.

        Args:
            outcome: 'success' or 'failure'
        """
        LOOKUP_OPERATIONS.labels(outcome=outcome).inc()

    def record_api_error(self, error_type: str) -> None:
        """
        Record an API error.

        Args:
            error_type: HTTP status code as a string, or 'connection'
        """
        API_ERRORS.labels(error_type=error_type).inc()

    def record_tweets_refetched(self, count: int) -> None:
        TWEETS_REFETCHED.inc(count)

    def record_tweets_written(self, count: int) -> None:
        TWEETS_WRITTEN.inc(count)

    def set_rate_limit_remaining(self, remaining: int) -> None:
        RATE_LIMIT_REMAINING.set(remaining)

    def record_pause(self, seconds: float) -> None:
        """Add time spent waiting on the rate limit."""
        RATE_LIMIT_PAUSE_SECONDS.inc(seconds)

    def time_request(self) -> "RequestTimer":
        """
        Create a context manager for timing API requests.

        Returns:
            RequestTimer context manager
        """
        return RequestTimer()


class RequestTimer:
    """Context manager for timing API requests."""

    def __init__(self):
        self.start_time: Optional[float] = None

    def __enter__(self) -> "RequestTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            REQUEST_DURATION.observe(time.time() - self.start_time)
