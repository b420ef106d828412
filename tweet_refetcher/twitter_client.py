"""Twitter API client wrapper for authenticated bulk tweet lookups."""

import asyncio
import logging
import time
from typing import Mapping, Optional, Sequence
from urllib.parse import urlencode

import aiohttp
from oauthlib.oauth1 import Client as OAuth1Client
from yarl import URL

from tweet_refetcher.config import Config
from tweet_refetcher.errors import LookupFailedError
from tweet_refetcher.models.mapping import split_json_objects
from tweet_refetcher.models.tweet import LookupResult, RateLimitStatus

logger = logging.getLogger(__name__)

LOOKUP_PATH = "/statuses/lookup.json"


def parse_rate_limit_headers(
    headers: Mapping[str, str],
    now: Optional[float] = None,
) -> Optional[RateLimitStatus]:
    """
    Build a RateLimitStatus from x-rate-limit response headers.

    Args:
        headers: Response headers (case-insensitive mapping)
        now: Current Unix time, defaults to time.time()

    Returns:
        The status, or None if the headers are absent or unparsable
    """
    remaining = headers.get("x-rate-limit-remaining")
    reset = headers.get("x-rate-limit-reset")
    if remaining is None or reset is None:
        return None

    try:
        remaining_calls = int(float(remaining))
        reset_epoch = int(float(reset))
    except (ValueError, TypeError):
        logger.warning(f"Failed to parse rate limit headers: remaining={remaining!r}, reset={reset!r}")
        return None

    limit: Optional[int] = None
    if headers.get("x-rate-limit-limit") is not None:
        try:
            limit = int(float(headers["x-rate-limit-limit"]))
        except (ValueError, TypeError):
            logger.warning("Failed to parse x-rate-limit-limit header")

    if now is None:
        now = time.time()

    return RateLimitStatus(
        remaining=remaining_calls,
        seconds_until_reset=reset_epoch - int(now),
        limit=limit,
        reset_epoch=reset_epoch,
    )


class TwitterClient:
    """Wrapper for the Twitter REST API with OAuth 1.0a request signing."""

    def __init__(self, config: Config):
        """
        Initialize the Twitter client with configuration.

        Args:
            config: Application configuration with Twitter credentials and proxy
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._signer: Optional[OAuth1Client] = None

    async def initialize(self) -> aiohttp.ClientSession:
        """
        Create the HTTP session and request signer.

        Returns:
            The open aiohttp session

        Raises:
            ValueError: If credentials are missing
        """
        if not self._session:
            logger.info("Initializing Twitter client")

            if not all([
                self.config.consumer_key,
                self.config.consumer_secret,
                self.config.access_token,
                self.config.access_token_secret,
            ]):
                raise ValueError("Missing Twitter API credentials")

            self._signer = OAuth1Client(
                self.config.consumer_key,
                client_secret=self.config.consumer_secret,
                resource_owner_key=self.config.access_token,
                resource_owner_secret=self.config.access_token_secret,
            )
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_sec),
            )
            if self.config.proxy.enabled:
                logger.info(f"Using HTTP proxy {self.config.proxy.url}")

        return self._session

    def _lookup_url(self, tweet_ids: Sequence[int]) -> str:
        params = {"id": ",".join(str(tweet_id) for tweet_id in tweet_ids)}
        if self.config.include_entities:
            params["include_entities"] = "true"
        if self.config.tweet_mode:
            params["tweet_mode"] = self.config.tweet_mode
        return f"{self.config.api_base_url.rstrip('/')}{LOOKUP_PATH}?{urlencode(params)}"

    def _proxy_kwargs(self) -> dict:
        proxy = self.config.proxy
        if not proxy.enabled:
            return {}
        kwargs = {"proxy": proxy.url}
        if proxy.user:
            kwargs["proxy_auth"] = aiohttp.BasicAuth(proxy.user, proxy.password)
        return kwargs

    async def lookup(self, tweet_ids: Sequence[int]) -> LookupResult:
        """
        Fetch up to 100 tweets by ID with GET statuses/lookup.

        Args:
            tweet_ids: Batch of tweet IDs

        Returns:
            Raw JSON text of each returned tweet, in response order, with the
            rate limit status of this call

        Raises:
            ValueError: If the client is not initialized
            LookupFailedError: If the call fails for any reason
        """
        if not self._session or not self._signer:
            raise ValueError("Twitter client not initialized")

        signed_url, headers, _ = self._signer.sign(self._lookup_url(tweet_ids), http_method="GET")

        # Kept when the body cannot be read
        rate_limit: Optional[RateLimitStatus] = None
        status: Optional[int] = None
        try:
            async with self._session.get(
                URL(signed_url, encoded=True),
                headers=headers,
                **self._proxy_kwargs(),
            ) as response:
                rate_limit = parse_rate_limit_headers(response.headers)
                status = response.status
                body = await response.text()

                if status >= 400:
                    raise LookupFailedError(
                        f"Lookup of {len(tweet_ids)} tweets failed with HTTP {status}: "
                        f"{body[:200]}",
                        rate_limit=rate_limit,
                        status=status,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LookupFailedError(
                f"Lookup of {len(tweet_ids)} tweets failed: {e!r}", rate_limit=rate_limit, status=status
            ) from e

        try:
            payloads = split_json_objects(body)
        except ValueError as e:
            raise LookupFailedError(
                f"Unparsable lookup response: {e}", rate_limit=rate_limit, status=status
            ) from e

        logger.debug(f"Lookup of {len(tweet_ids)} IDs returned {len(payloads)} tweets")
        return LookupResult(payloads=payloads, rate_limit=rate_limit)

    async def close(self) -> None:
        """Close the HTTP session and release resources."""
        if self._session:
            logger.info("Closing Twitter client")
            await self._session.close()
            self._session = None
            self._signer = None

    async def __aenter__(self) -> "TwitterClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
