"""MCP server exposing the page-zipper scrape tool."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .config import PageConfig, ScrapeConfig
from .pipeline import scrape_page

logger = logging.getLogger("page_zipper.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="page-zipper")


@mcp.tool()
async def scrape(
    url: str,
    image_selector: str = "img",
    title_selector: str = "",
    output: str = "downloads",
    render: bool = False,
) -> str:
    """Download every image on a page into a zip archive and return its path."""

    page = PageConfig(
        url=url,
        title_selector=title_selector,
        image_selector=image_selector,
        render=render,
    )
    config = ScrapeConfig(output_root=Path(output).expanduser())
    outcome = await asyncio.to_thread(scrape_page, url, page, config)
    return str(outcome.path.resolve())


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
