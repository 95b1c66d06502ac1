"""High-level orchestration: images to archive to disk, one page at a time."""

from __future__ import annotations

import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import requests

from .archiver import build_archive
from .config import PageConfig, ScrapeConfig
from .document import load_document
from .errors import ScrapeError
from .fetcher import fetch as http_fetch
from .images import Fetch, collect_images
from .models import PageOutcome, PageResult, PipelineState
from .storage import archive_path, persist

logger = logging.getLogger("page_zipper")


class PagePipeline:
    """Tracks one page through collection, archiving and persistence.

    The state only moves forward; any error lands in ``FAILED`` and is
    re-raised to the caller.
    """

    def __init__(self, title: str, config: ScrapeConfig, fetch: Fetch) -> None:
        self.title = title
        self.config = config
        self.fetch = fetch
        self.state = PipelineState.FETCHING

    def _advance(self, state: PipelineState) -> None:
        logger.debug("%s: %s -> %s", self.title, self.state.value, state.value)
        self.state = state

    def run(self, urls: Sequence[str]) -> PageOutcome:
        if self.state is not PipelineState.FETCHING:
            raise RuntimeError(f"Pipeline for {self.title} already ran ({self.state.value})")
        try:
            images = collect_images(
                urls,
                fetch=self.fetch,
                max_workers=self.config.max_workers,
                cancel_pending=self.config.cancel_pending,
            )
            self._advance(PipelineState.COLLECTING)
            image_count = len(images)

            self._advance(PipelineState.ARCHIVING)
            result = PageResult(
                title=self.title,
                archive=build_archive(images, compression=self.config.compression),
            )

            self._advance(PipelineState.PERSISTING)
            written = persist(
                result.title,
                result.archive,
                output_root=self.config.output_root,
                extension=self.config.archive_extension,
            )
        except ScrapeError:
            self._advance(PipelineState.FAILED)
            raise

        self._advance(PipelineState.DONE)
        return PageOutcome(
            title=self.title,
            path=archive_path(self.title, self.config.output_root, self.config.archive_extension),
            bytes_written=written,
            image_count=image_count,
            state=self.state,
        )


def process_page(
    title: str,
    urls: Sequence[str],
    config: Optional[ScrapeConfig] = None,
    fetch: Optional[Fetch] = None,
) -> PageOutcome:
    """Download ``urls``, zip them and save the archive under ``title``."""
    config = config or ScrapeConfig()
    if fetch is None:
        fetch = functools.partial(http_fetch, timeout=config.request_timeout)
    return PagePipeline(title, config, fetch).run(urls)


def scrape_page(
    url: str,
    page: PageConfig,
    config: Optional[ScrapeConfig] = None,
    fetch: Optional[Fetch] = None,
    session: Optional[requests.Session] = None,
) -> PageOutcome:
    """Load a page, find its title and images, and archive them."""
    config = config or ScrapeConfig()
    document = load_document(url, page, config, session=session)
    logger.info("%s: %d images on %s", document.title, len(document.image_srcs), url)
    return process_page(document.title, document.image_srcs, config=config, fetch=fetch)


def unexpected_failure(url: str, exc: Exception) -> ScrapeError:
    """Wrap an error that escaped the pipeline so it can be reported per page."""
    failure = ScrapeError(f"Unexpected error scraping {url}: {exc}")
    failure.__cause__ = exc
    return failure


@dataclass
class ScrapeReport:
    """Outcome of one URL in a batch; exactly one of outcome/error is set."""

    url: str
    outcome: Optional[PageOutcome] = None
    error: Optional[ScrapeError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not None and self.error is None


def scrape_pages(
    urls: Sequence[str],
    page: PageConfig,
    config: Optional[ScrapeConfig] = None,
    scrape: Callable[..., PageOutcome] = scrape_page,
) -> List[ScrapeReport]:
    """Scrape several pages concurrently; a failing page does not affect others."""
    config = config or ScrapeConfig()

    def _run(url: str) -> ScrapeReport:
        try:
            return ScrapeReport(url=url, outcome=scrape(url, page, config))
        except ScrapeError as exc:
            logger.error("Failed to scrape %s: %s", url, exc)
            return ScrapeReport(url=url, error=exc)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error scraping %s", url)
            return ScrapeReport(url=url, error=unexpected_failure(url, exc))

    if not urls:
        return []
    with ThreadPoolExecutor(max_workers=len(urls), thread_name_prefix="page") as pool:
        return list(pool.map(_run, urls))
