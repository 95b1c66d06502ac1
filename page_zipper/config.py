"""Configuration objects and loaders for the scraper."""

from __future__ import annotations

import tomllib
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.toml")
DEFAULT_OUTPUT_ROOT = Path("downloads")
ARCHIVE_EXTENSION = ".zip"


@dataclass
class ScrapeConfig:
    """Runtime settings shared by every page scraped in one session."""

    output_root: Path = DEFAULT_OUTPUT_ROOT
    archive_extension: str = ARCHIVE_EXTENSION
    # None keeps one concurrent fetch per image.
    max_workers: Optional[int] = None
    request_timeout: Optional[float] = None
    cancel_pending: bool = False
    compression: int = zipfile.ZIP_DEFLATED
    navigation_timeout: float = 30.0
    wait_after_load: float = 1.0

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigError(f"max_workers must be positive, got {self.max_workers}")


@dataclass
class PageConfig:
    """Selectors describing where the title and images live on a page."""

    url: str
    title_selector: str = ""
    image_selector: str = "img"
    render: bool = False
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.url


@dataclass
class SiteConfig:
    """Contents of a configuration file."""

    pages: List[PageConfig] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)

    def find_page(self, key: Optional[str]) -> PageConfig:
        """Look up a page by name or by its position in the file."""
        if not self.pages:
            raise ConfigError("No [[pages]] defined in configuration")
        if key is None:
            return self.pages[0]
        for page in self.pages:
            if page.name == key:
                return page
        if key.isdigit() and int(key) < len(self.pages):
            return self.pages[int(key)]
        raise ConfigError(f"Unknown page {key!r}")


_PAGE_KEYS = {"url", "title_selector", "image_selector", "render", "name"}
_SETTING_KEYS = {
    "output_root",
    "max_workers",
    "request_timeout",
    "cancel_pending",
    "navigation_timeout",
    "wait_after_load",
}


def _parse_page(index: int, raw: Any) -> PageConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"pages[{index}] must be a table")
    unknown = set(raw) - _PAGE_KEYS
    if unknown:
        raise ConfigError(f"pages[{index}] has unknown keys: {', '.join(sorted(unknown))}")
    url = raw.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigError(f"pages[{index}] is missing a url")
    return PageConfig(
        url=url,
        title_selector=str(raw.get("title_selector", "")),
        image_selector=str(raw.get("image_selector", "img")),
        render=bool(raw.get("render", False)),
        name=raw.get("name"),
    )


def parse_config(data: dict[str, Any]) -> SiteConfig:
    """Validate a decoded TOML document."""
    pages_raw = data.get("pages", [])
    if not isinstance(pages_raw, list):
        raise ConfigError("pages must be an array of tables")
    settings = data.get("settings", {})
    if not isinstance(settings, dict):
        raise ConfigError("settings must be a table")
    unknown = set(settings) - _SETTING_KEYS
    if unknown:
        raise ConfigError(f"settings has unknown keys: {', '.join(sorted(unknown))}")
    pages = [_parse_page(index, raw) for index, raw in enumerate(pages_raw)]
    return SiteConfig(pages=pages, settings=dict(settings))


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SiteConfig:
    """Read page definitions from a TOML file."""
    try:
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    return parse_config(data)


def build_scrape_config(settings: dict[str, Any], **overrides: Any) -> ScrapeConfig:
    """Merge file settings with command-line overrides (non-None wins)."""
    values = dict(settings)
    values.update({key: value for key, value in overrides.items() if value is not None})
    if "output_root" in values:
        values["output_root"] = Path(values["output_root"])
    return ScrapeConfig(**values)
