"""Tweet Refetcher: re-fetch collected tweets to track how their metadata drifts."""

__version__ = "0.1.0"
