"""Single-shot HTTP retrieval of image bytes."""

from __future__ import annotations

import logging
from typing import Optional

import requests
from filetype import guess

from .errors import FetchFailure, InvalidReference

logger = logging.getLogger("page_zipper")


def sniff_image_type(data: bytes) -> Optional[str]:
    """Return the MIME type of ``data`` when its signature is an image."""
    kind = guess(data)
    if kind is None or not kind.mime.startswith("image/"):
        return None
    return kind.mime


def fetch(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """Download the full response body for ``url``.

    An empty URL is rejected before any request is made. Transport errors
    and non-success statuses raise :class:`FetchFailure`; nothing is retried.
    """
    if not url:
        raise InvalidReference()
    client = session or requests
    try:
        with client.get(url, timeout=timeout) as resp:
            resp.raise_for_status()
            data = resp.content
    except requests.RequestException as exc:
        raise FetchFailure(url, str(exc)) from exc

    mime = sniff_image_type(data)
    if mime is None:
        # Non-image payloads are still archived.
        logger.warning("%s does not look like an image (%d bytes)", url, len(data))
    else:
        logger.debug("Fetched %s (%d bytes, %s)", url, len(data), mime)
    return data
