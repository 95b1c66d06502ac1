"""Loading pages and querying them for a title and image sources."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from lxml.etree import ParserError
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from readability import Document
from readability.readability import Unparseable
from soupsieve import SelectorSyntaxError

from .config import PageConfig, ScrapeConfig
from .errors import ExtractionFailure
from .models import PageDocument

logger = logging.getLogger("page_zipper")


def normalize_title(title: str) -> str:
    """Make a title safe to use as a file name."""
    return title.strip().replace("/", "_").replace(" ", "_")


def fetch_html(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Tuple[str, str]:
    """GET a page and return its HTML and final URL."""
    client = session or requests
    try:
        with client.get(url, timeout=timeout) as resp:
            resp.raise_for_status()
            return resp.text, resp.url or url
    except requests.RequestException as exc:
        raise ExtractionFailure(f"Failed to load {url}: {exc}") from exc


def render_html(url: str, config: ScrapeConfig) -> Tuple[str, str]:
    """Navigate to a URL with a headless browser and return the HTML and final URL."""
    try:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=True)
            try:
                page = browser.new_page()
                page.set_default_navigation_timeout(config.navigation_timeout * 1000)
                logger.info("Loading %s", url)
                page.goto(url, wait_until="networkidle")
                if config.wait_after_load:
                    page.wait_for_timeout(int(config.wait_after_load * 1000))
                html = page.content()
                final_url = page.url
            finally:
                browser.close()
    except PlaywrightError as exc:
        raise ExtractionFailure(f"Failed to render {url}: {exc}") from exc
    return html, final_url


def extract_title(soup: BeautifulSoup, html: str, selector: str) -> str:
    """Read the page title, preferring the configured selector."""
    if selector:
        title = "".join(node.get_text() for node in soup.select(selector))
        title = normalize_title(title)
        if not title:
            raise ExtractionFailure(f"Failed to get title {selector}")
        return title

    title = Document(html).short_title()
    if not title and soup.title and soup.title.string:
        title = soup.title.string
    title = normalize_title(title or "")
    if not title:
        raise ExtractionFailure("Failed to get title from <title>")
    return title


def extract_image_srcs(soup: BeautifulSoup, selector: str, base_url: str) -> List[str]:
    """Return one source per matched element; missing ``src`` stays empty."""
    srcs: List[str] = []
    for element in soup.select(selector):
        src = (element.get("src") or "").strip()
        srcs.append(urljoin(base_url, src) if src else "")
    return srcs


def parse_document(html: str, url: str, page: PageConfig) -> PageDocument:
    soup = BeautifulSoup(html, "html.parser")
    try:
        title = extract_title(soup, html, page.title_selector)
        srcs = extract_image_srcs(soup, page.image_selector, url)
    except SelectorSyntaxError as exc:
        raise ExtractionFailure(f"Invalid selector for {url}: {exc}") from exc
    except (Unparseable, ParserError) as exc:
        raise ExtractionFailure(f"Could not parse {url}: {exc}") from exc
    return PageDocument(url=url, title=title, image_srcs=srcs)


def load_document(
    url: str,
    page: PageConfig,
    config: ScrapeConfig,
    session: Optional[requests.Session] = None,
) -> PageDocument:
    """Load ``url`` and extract what the pipeline needs from it."""
    if page.render:
        html, final_url = render_html(url, config)
    else:
        html, final_url = fetch_html(url, session=session, timeout=config.request_timeout)
    return parse_document(html, final_url, page)
