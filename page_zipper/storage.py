"""Writing finished archives to the local filesystem."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import ARCHIVE_EXTENSION, DEFAULT_OUTPUT_ROOT
from .errors import PersistFailure

logger = logging.getLogger("page_zipper")


def archive_path(
    title: str,
    output_root: Path = DEFAULT_OUTPUT_ROOT,
    extension: str = ARCHIVE_EXTENSION,
) -> Path:
    """Location of the archive for ``title``; the title is used verbatim."""
    return Path(output_root) / f"{title}{extension}"


def persist(
    title: str,
    archive: bytes,
    output_root: Path = DEFAULT_OUTPUT_ROOT,
    extension: str = ARCHIVE_EXTENSION,
) -> int:
    """Write ``archive`` under ``output_root`` and return the bytes written.

    Existing files with the same name are overwritten.
    """
    output_root = Path(output_root)
    logger.debug("Create directory %s", output_root)
    try:
        output_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PersistFailure(f"Failed to create directory {output_root}: {exc}") from exc

    destination = archive_path(title, output_root, extension)
    logger.debug("Write zip file %s", destination)
    try:
        with open(destination, "wb") as handle:
            written = handle.write(archive)
    except OSError as exc:
        raise PersistFailure(f"Failed to write {destination}: {exc}") from exc

    if written != len(archive):
        raise PersistFailure(
            f"Incomplete write to {destination} ({written} of {len(archive)} bytes)"
        )
    logger.info("Saved %s", title)
    return written
