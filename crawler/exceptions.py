"""Exceptions raised while fetching, extracting and saving novels."""
from typing import Optional


class ArchiverError(Exception):
    """Base class for all download failures."""


class FetchError(ArchiverError):
    """A page could not be retrieved or parsed (transport failure)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(ArchiverError):
    """An expected element is missing from a fetched page."""


class NoChaptersFoundError(ExtractionError):
    """The table of contents was walked completely but listed no chapters."""


class UnsupportedSourceError(ArchiverError):
    """No spider is registered for the URL's domain."""


class PersistenceError(ArchiverError):
    """A file could not be written."""


class RetryExhaustedError(ArchiverError):
    """Every attempt of a retried operation failed."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException]):
        super().__init__(
            f"{description} failed {attempts} times; last error: {last_error}"
        )
        self.description = description
        self.attempts = attempts
        self.last_error = last_error


class DownloadAbortedError(ArchiverError):
    """Too many chapters failed in a row; the whole download stops."""

    def __init__(self, failures: int, last_error: Optional[BaseException]):
        super().__init__(
            f"Stopping download after {failures} consecutive chapter failures; "
            f"last error: {last_error}"
        )
        self.failures = failures
        self.last_error = last_error
