"""Command-line entry point for page-zipper."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
import webbrowser
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Sequence

from .config import (
    DEFAULT_CONFIG_PATH,
    PageConfig,
    ScrapeConfig,
    SiteConfig,
    build_scrape_config,
    load_config,
)
from .errors import ScrapeError
from .pipeline import ScrapeReport, scrape_page, scrape_pages, unexpected_failure

logger = logging.getLogger("page_zipper.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("scrape", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        type=Path,
        help="TOML file with [[pages]] definitions (default: config.toml)",
    )
    parser.add_argument(
        "--page",
        default=None,
        help="Name or index of the page definition to use (default: the first one)",
    )
    parser.add_argument(
        "--title-selector",
        default=None,
        help="CSS selector for the page title (overrides the config file)",
    )
    parser.add_argument(
        "--image-selector",
        default=None,
        help="CSS selector for the images to download (overrides the config file)",
    )
    parser.add_argument(
        "--render",
        action="store_true",
        default=None,
        help="Render pages with a headless browser before reading HTML",
    )
    parser.add_argument(
        "--output",
        default=None,
        type=Path,
        help="Directory where archives should be written (default: downloads)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum concurrent image downloads per page (default: unbounded)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: no timeout)",
    )
    parser.add_argument(
        "--cancel-pending",
        action="store_true",
        default=None,
        help="Skip image downloads that have not started once one has failed",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download every image on a web page into a zip archive.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape_parser = subparsers.add_parser(
        "scrape", help="Archive the images of one or more page URLs"
    )
    scrape_parser.add_argument("urls", nargs="+", help="One or more page URLs")
    _add_common_arguments(scrape_parser)

    interactive_parser = subparsers.add_parser(
        "interactive", help="Prompt for page URLs and archive each one in the background"
    )
    interactive_parser.add_argument(
        "--open",
        action="store_true",
        help="Open the configured page in the web browser before prompting",
    )
    _add_common_arguments(interactive_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def resolve_settings(args: argparse.Namespace) -> tuple[PageConfig, ScrapeConfig]:
    """Combine the config file (when present) with command-line overrides."""
    if args.config.exists() or args.config != DEFAULT_CONFIG_PATH:
        site = load_config(args.config)
    else:
        site = SiteConfig()

    page = site.find_page(args.page) if site.pages or args.page else PageConfig(url="")
    overrides = {
        "title_selector": args.title_selector,
        "image_selector": args.image_selector,
        "render": args.render,
    }
    page = replace(page, **{key: value for key, value in overrides.items() if value is not None})

    config = build_scrape_config(
        site.settings,
        output_root=args.output,
        max_workers=args.max_workers,
        request_timeout=args.timeout,
        cancel_pending=args.cancel_pending,
    )
    return page, config


def _summarize(reports: Sequence[ScrapeReport], elapsed: float) -> int:
    failures = [report for report in reports if not report.ok]
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        elapsed,
        len(reports) - len(failures),
        len(reports),
        len(failures),
    )
    for report in reports:
        if report.outcome is not None:
            logger.debug(
                "%s -> %s (%d images, %d bytes)",
                report.url,
                report.outcome.path,
                report.outcome.image_count,
                report.outcome.bytes_written,
            )
    return 1 if failures else 0


def _run_scrape(args: argparse.Namespace) -> int:
    page, config = resolve_settings(args)
    overall_start = time.perf_counter()
    reports = scrape_pages(args.urls, page, config)
    return _summarize(reports, time.perf_counter() - overall_start)


def read_urls(prompt: Callable[[str], str] = input) -> Iterator[str]:
    """Yield URLs typed at the prompt until EOF or an empty line."""
    while True:
        try:
            url = prompt("URL:").strip()
        except EOFError:
            return
        if not url:
            return
        print("→", url)
        yield url


def run_interactive(
    urls: Iterable[str],
    page: PageConfig,
    config: ScrapeConfig,
    scrape: Callable[..., object] = scrape_page,
) -> List[ScrapeReport]:
    """Start one background scrape per URL as it arrives and wait for all."""
    reports: List[ScrapeReport] = []
    threads: List[threading.Thread] = []

    def _run(report: ScrapeReport) -> None:
        try:
            report.outcome = scrape(report.url, page, config)
        except ScrapeError as exc:
            logger.error("Failed to scrape %s: %s", report.url, exc)
            report.error = exc
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error scraping %s", report.url)
            report.error = unexpected_failure(report.url, exc)

    for url in urls:
        report = ScrapeReport(url=url)
        reports.append(report)
        thread = threading.Thread(target=_run, args=(report,), name=f"page-{len(threads)}")
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join()
    return reports


def _run_interactive(args: argparse.Namespace) -> int:
    page, config = resolve_settings(args)
    if args.open:
        if not page.url:
            logger.warning("No page URL configured; nothing to open")
        else:
            webbrowser.open_new(page.url)
    overall_start = time.perf_counter()
    reports = run_interactive(read_urls(), page, config)
    return _summarize(reports, time.perf_counter() - overall_start)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.command == "scrape":
            return _run_scrape(args)
        return _run_interactive(args)
    except ScrapeError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
