"""Exception types raised by the scraping pipeline."""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for every failure surfaced by page_zipper."""


class ConfigError(ScrapeError):
    """The page configuration is missing or malformed."""


class ExtractionFailure(ScrapeError):
    """A page could not be loaded or did not yield a usable title."""


class InvalidReference(ScrapeError):
    """An image reference is empty and cannot be fetched."""

    def __init__(self, index: int | None = None) -> None:
        self.index = index
        if index is None:
            message = "<img> does not have attribute `src`"
        else:
            message = f"<img> at position {index} does not have attribute `src`"
        super().__init__(message)


class FetchFailure(ScrapeError):
    """A remote resource could not be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ArchiveFailure(ScrapeError):
    """The collected images could not be written into an archive."""


class PersistFailure(ScrapeError):
    """The archive could not be written to storage."""
