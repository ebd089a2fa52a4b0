"""
Error taxonomy for the scraping and extraction pipeline.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ScraperError):
    """Missing API key, unreadable prompt or keyword file."""


class FetchError(ScraperError):
    """A thread page could not be downloaded. Terminal for that page."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


class ExtractionError(ScraperError):
    """Base class for failures of a single extraction call."""


class RateLimited(ExtractionError):
    """
    The extraction service asked us to slow down.

    Args:
        message: Error text reported by the service
        retry_after: Server-suggested wait in seconds, if one was given
    """

    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ServiceError(ExtractionError):
    """Any non rate-limit failure of the extraction service."""


class RetryExceeded(ExtractionError):
    """Rate limiting persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"rate limited on all {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class ExtractionCancelled(ExtractionError):
    """The unit was not sent because a sibling unit failed first."""


class PipelineError(ScraperError):
    """
    A run was aborted.

    Args:
        stage: Pipeline stage that failed ('fetch', 'extract', ...)
        message: Human readable reason
        index: Unit index involved, if any
    """

    def __init__(self, stage: str, message: str, index: Optional[int] = None):
        location = f"{stage} (unit {index})" if index is not None else stage
        super().__init__(f"{location}: {message}")
        self.stage = stage
        self.index = index
