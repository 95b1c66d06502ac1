"""Data models used throughout the scraping pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path


class PipelineState(enum.Enum):
    """Stages a single page moves through; FAILED and DONE are terminal."""

    FETCHING = "fetching"
    COLLECTING = "collecting"
    ARCHIVING = "archiving"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Image:
    """Downloaded image bytes tagged with their archive entry name."""

    name: str
    content: bytes
    index: int
    source_url: str


@dataclass(frozen=True)
class PageResult:
    """Archive built for one page, ready to be persisted."""

    title: str
    archive: bytes


@dataclass
class PageOutcome:
    """Summary of a page that was archived and written to disk."""

    title: str
    path: Path
    bytes_written: int
    image_count: int
    state: PipelineState = PipelineState.DONE


@dataclass
class PageDocument:
    """Title and image references extracted from a loaded page."""

    url: str
    title: str
    image_srcs: list[str]
