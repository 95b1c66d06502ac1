"""Concurrent image downloading with single-writer aggregation.

Each image reference gets its own worker thread. Workers never touch the
result list: they hand exactly one message each (an :class:`Image`, a
failure or a skip notice) to an aggregator thread over a queue. A launcher
thread joins every worker and only then posts a finished marker, so the
aggregator has seen every worker's message before it hands back a result.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from .errors import FetchFailure, InvalidReference, ScrapeError
from .fetcher import fetch as default_fetch
from .models import Image

logger = logging.getLogger("page_zipper")

Fetch = Callable[[str], bytes]

_FINISHED = object()


@dataclass(frozen=True)
class _Failure:
    index: int
    error: ScrapeError


@dataclass(frozen=True)
class _Skipped:
    index: int


_Message = Union[Image, _Failure, _Skipped, object]


def image_basename(url: str) -> str:
    """Return the final ``/``-delimited segment of ``url``."""
    return url.split("/")[-1]


def image_name(index: int, url: str) -> str:
    """Archive entry name for the image at ``index`` in the source list."""
    return f"{index}-{image_basename(url)}"


def _download(
    index: int,
    url: str,
    fetch: Fetch,
    done: "queue.Queue[_Message]",
    limiter: Optional[threading.BoundedSemaphore],
    cancelled: Optional[threading.Event],
) -> None:
    message: Optional[_Message] = None
    if limiter is not None:
        limiter.acquire()
    try:
        if cancelled is not None and cancelled.is_set():
            logger.debug("SKIP [ %d ] %s", index, url)
            message = _Skipped(index)
        else:
            logger.info("START [ %d ] %s", index, url)
            try:
                content = fetch(url)
            except ScrapeError as exc:
                message = _Failure(index, exc)
            except Exception as exc:  # pylint: disable=broad-except
                failure = FetchFailure(url, str(exc) or type(exc).__name__)
                failure.__cause__ = exc
                message = _Failure(index, failure)
            else:
                message = Image(
                    name=image_name(index, url),
                    content=content,
                    index=index,
                    source_url=url,
                )
            if cancelled is not None and isinstance(message, _Failure):
                cancelled.set()
            logger.info("DONE [ %d ] %s", index, url)
    finally:
        if message is None:
            message = _Failure(index, FetchFailure(url, "download ended without a result"))
            if cancelled is not None:
                cancelled.set()
        if limiter is not None:
            limiter.release()
        done.put(message)


def _launch(
    urls: Sequence[str],
    fetch: Fetch,
    done: "queue.Queue[_Message]",
    limiter: Optional[threading.BoundedSemaphore],
    cancelled: Optional[threading.Event],
) -> None:
    workers: List[threading.Thread] = []
    try:
        for index, url in enumerate(urls):
            worker = threading.Thread(
                target=_download,
                args=(index, url, fetch, done, limiter, cancelled),
                name=f"image-fetch-{index}",
                daemon=True,
            )
            worker.start()
            workers.append(worker)
    except RuntimeError as exc:
        done.put(_Failure(len(workers), FetchFailure(urls[len(workers)], str(exc))))
    finally:
        for worker in workers:
            worker.join()
        done.put(_FINISHED)


def _aggregate(
    expected: int,
    done: "queue.Queue[_Message]",
    results: "queue.Queue[Union[List[Image], ScrapeError]]",
    failed: threading.Event,
) -> None:
    images: List[Image] = []
    error: Optional[ScrapeError] = None
    received = 0
    while True:
        message = done.get()
        if message is _FINISHED:
            break
        received += 1
        if isinstance(message, _Failure):
            if error is None:
                error = message.error
                failed.set()
                logger.error("Image %d failed: %s", message.index, error)
            else:
                logger.debug("Ignoring later failure of image %d: %s", message.index, message.error)
        elif isinstance(message, Image) and error is None:
            images.append(message)
    if error is None and received != expected:
        error = ScrapeError(f"Expected {expected} download results, received {received}")
        logger.error("%s", error)
    results.put(error if error is not None else images)


def collect_images(
    urls: Sequence[str],
    fetch: Fetch = default_fetch,
    max_workers: Optional[int] = None,
    cancel_pending: bool = False,
) -> List[Image]:
    """Fetch every URL concurrently and return the downloaded images.

    The returned list is in arrival order; ``Image.index`` and the name
    prefix carry the original position. The first failure is raised once all
    workers have finished, and no partial list is ever returned.

    ``max_workers`` bounds how many fetches run at the same time (default:
    one per URL). With ``cancel_pending`` workers that have not yet started
    their request skip it after a failure; running requests always complete.
    """
    urls = list(urls)
    for index, url in enumerate(urls):
        if not url:
            raise InvalidReference(index)
    logger.info("%d images.", len(urls))
    if not urls:
        return []

    done: "queue.Queue[_Message]" = queue.Queue()
    results: "queue.Queue[Union[List[Image], ScrapeError]]" = queue.Queue(maxsize=1)
    failed = threading.Event()
    limiter = threading.BoundedSemaphore(max_workers) if max_workers else None
    cancelled = failed if cancel_pending else None

    aggregator = threading.Thread(
        target=_aggregate,
        args=(len(urls), done, results, failed),
        name="image-aggregator",
        daemon=True,
    )
    launcher = threading.Thread(
        target=_launch,
        args=(urls, fetch, done, limiter, cancelled),
        name="image-launcher",
        daemon=True,
    )
    aggregator.start()
    launcher.start()

    outcome = results.get()
    launcher.join()
    aggregator.join()
    if isinstance(outcome, ScrapeError):
        raise outcome
    return outcome
