"""Rate limit pacing for Twitter API lookups."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from tweet_refetcher.config import RateLimitConfig
from tweet_refetcher.models.tweet import RateLimitStatus

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Rate limiter for Twitter API lookups.

    Reads the x-rate-limit snapshot returned with each call and pauses the
    caller until the window resets when the remaining budget or the time left
    in the window drops below the configured thresholds.
    """

    def __init__(self, config: RateLimitConfig):
        """
        Initialize the rate limiter with configuration.

        Args:
            config: Rate limiting configuration
        """
        self.config = config

    def should_pause(self, status: Optional[RateLimitStatus]) -> bool:
        """True if the given status says the next call must wait for a reset."""
        if status is None:
            return False
        return (
            status.remaining < self.config.min_remaining_calls
            or status.seconds_until_reset < self.config.min_seconds_until_reset
        )

    def pause_duration(self, status: Optional[RateLimitStatus]) -> float:
        """
        Seconds to wait before the next lookup.

        Args:
            status: Rate limit status from the most recent call, if any

        Returns:
            0 when no pause is needed, otherwise the time until the window
            resets plus the safety buffer
        """
        if not self.should_pause(status):
            return 0.0
        return float(max(status.seconds_until_reset, 0) + self.config.sleep_buffer_sec)

    async def maybe_pause(self, status: Optional[RateLimitStatus]) -> float:
        """
        Sleep until the rate limit window resets, if the status calls for it.

        Args:
            status: Rate limit status from the most recent call, if any

        Returns:
            Seconds spent waiting
        """
        wait_seconds = self.pause_duration(status)
        if wait_seconds <= 0:
            if status is not None:
                logger.debug(f"Rate limit status: {status.remaining} calls remaining, "
                             f"reset in {status.seconds_until_reset}s")
            return 0.0

        logger.info(f"Rate limit reached ({status.remaining} calls remaining). "
                    f"Waiting {wait_seconds:.0f} seconds starting at {datetime.now()}...")
        try:
            await asyncio.sleep(wait_seconds)
        except asyncio.CancelledError:
            logger.warning("Rate limit wait was interrupted, continuing")
            # Python 3.11+ keeps the task flagged as cancelling until this is undone
            task = asyncio.current_task()
            if task is not None and hasattr(task, "uncancel"):
                task.uncancel()
        logger.info("Resuming...")
        return wait_seconds
