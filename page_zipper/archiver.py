"""Packaging downloaded images into an in-memory zip archive."""

from __future__ import annotations

import io
import logging
import zipfile
from typing import Dict, Iterable

from .errors import ArchiveFailure
from .models import Image

logger = logging.getLogger("page_zipper")

# Fixed entry timestamp so identical images always produce identical bytes.
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def build_archive(
    images: Iterable[Image],
    compression: int = zipfile.ZIP_DEFLATED,
) -> bytes:
    """Write one zip entry per image, named after ``Image.name``."""
    ordered = sorted(images, key=lambda image: (image.index, image.name))
    buffer = io.BytesIO()
    seen = set()
    try:
        with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
            for image in ordered:
                if image.name in seen:
                    raise ArchiveFailure(f"Duplicate archive entry {image.name!r}")
                seen.add(image.name)
                info = zipfile.ZipInfo(image.name, date_time=ENTRY_DATE_TIME)
                info.compress_type = compression
                info.external_attr = 0o644 << 16
                archive.writestr(info, image.content)
    except ArchiveFailure:
        raise
    except (OSError, ValueError, zipfile.LargeZipFile) as exc:
        raise ArchiveFailure(f"Failed to write archive: {exc}") from exc
    data = buffer.getvalue()
    logger.debug("Built archive with %d entries (%d bytes)", len(seen), len(data))
    return data


def read_archive(data: bytes) -> Dict[str, bytes]:
    """Return every entry of an archive keyed by its name."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return {name: archive.read(name) for name in archive.namelist()}
    except zipfile.BadZipFile as exc:
        raise ArchiveFailure(f"Not a valid archive: {exc}") from exc
