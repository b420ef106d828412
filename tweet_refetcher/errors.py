"""Exception types raised by the tweet refetcher."""

from typing import Optional

from tweet_refetcher.models.tweet import RateLimitStatus


class RefetchError(Exception):
    """Base class for all refetcher errors."""


class InputFileError(RefetchError):
    """The seed tweet file could not be opened or read."""


class CredentialsError(RefetchError):
    """The credentials properties file could not be opened or read."""


class ConfigurationError(RefetchError):
    """The YAML settings file is malformed or holds a value of the wrong type."""


class LookupFailedError(RefetchError):
    """
    A bulk lookup call failed.

    Carries the rate limit status from the failed response when the service
    still sent its rate limit headers, so the caller can keep pacing itself.
    """

    def __init__(
        self,
        message: str,
        rate_limit: Optional[RateLimitStatus] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.rate_limit = rate_limit
        self.status = status
