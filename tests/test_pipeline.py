"""Page pipeline tests."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from page_zipper.archiver import read_archive
from page_zipper.config import PageConfig, ScrapeConfig
from page_zipper.errors import (
    ExtractionFailure,
    FetchFailure,
    InvalidReference,
    PersistFailure,
    ScrapeError,
)
from page_zipper.models import PageDocument, PageOutcome, PipelineState
from page_zipper.pipeline import (
    PagePipeline,
    ScrapeReport,
    process_page,
    scrape_page,
    scrape_pages,
)


def test_process_page_writes_archive(workdir, fake_fetch):
    urls = ["https://x/a.png", "https://x/b.png"]
    fetch = fake_fetch(payloads={urls[0]: b"aaa", urls[1]: b"bb"})

    outcome = process_page("My_Title", urls, fetch=fetch)

    assert outcome.state is PipelineState.DONE
    assert outcome.image_count == 2
    assert outcome.path == workdir.joinpath("downloads", "My_Title.zip").relative_to(workdir)
    blob = (workdir / "downloads" / "My_Title.zip").read_bytes()
    assert outcome.bytes_written == len(blob)
    assert read_archive(blob) == {"0-a.png": b"aaa", "1-b.png": b"bb"}


def test_fetch_failure_never_builds_archive(tmp_path, fake_fetch):
    urls = [f"https://x/{i}.png" for i in range(5)]
    fetch = fake_fetch(failing={urls[2]})
    config = ScrapeConfig(output_root=tmp_path)

    with patch("page_zipper.pipeline.build_archive") as build, pytest.raises(FetchFailure):
        process_page("Broken", urls, config=config, fetch=fetch)

    build.assert_not_called()
    assert not (tmp_path / "Broken.zip").exists()


def test_failed_pipeline_records_state(tmp_path, fake_fetch):
    pipeline = PagePipeline("t", ScrapeConfig(output_root=tmp_path), fake_fetch())

    with pytest.raises(InvalidReference):
        pipeline.run(["https://x/a.png", ""])
    assert pipeline.state is PipelineState.FAILED


def test_pipeline_cannot_rerun(tmp_path, fake_fetch):
    pipeline = PagePipeline("t", ScrapeConfig(output_root=tmp_path), fake_fetch())
    pipeline.run(["https://x/a.png"])

    with pytest.raises(RuntimeError):
        pipeline.run(["https://x/a.png"])


def test_persist_failure_after_collection(tmp_path, fake_fetch):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    pipeline = PagePipeline("t", ScrapeConfig(output_root=blocker), fake_fetch())

    with pytest.raises(PersistFailure):
        pipeline.run(["https://x/a.png"])
    assert pipeline.state is PipelineState.FAILED


def test_page_without_images_gives_empty_archive(tmp_path, fake_fetch):
    outcome = process_page("Empty", [], config=ScrapeConfig(output_root=tmp_path), fetch=fake_fetch())

    assert outcome.image_count == 0
    assert read_archive((tmp_path / "Empty.zip").read_bytes()) == {}


def test_scrape_page_uses_document(tmp_path, fake_fetch):
    page = PageConfig(url="https://site/start", title_selector="h1", image_selector="img")
    document = PageDocument(
        url="https://site/gallery",
        title="Gallery_One",
        image_srcs=["https://site/i/1.jpg", "https://site/i/2.jpg"],
    )
    config = ScrapeConfig(output_root=tmp_path)

    with patch("page_zipper.pipeline.load_document", return_value=document) as load:
        outcome = scrape_page("https://site/gallery", page, config, fetch=fake_fetch())

    load.assert_called_once_with("https://site/gallery", page, config, session=None)
    assert outcome.image_count == 2
    assert set(read_archive((tmp_path / "Gallery_One.zip").read_bytes())) == {"0-1.jpg", "1-2.jpg"}


def test_scrape_pages_isolates_failures(tmp_path):
    page = PageConfig(url="")
    config = ScrapeConfig(output_root=tmp_path)

    def scrape(url, page, config):
        if "bad" in url:
            raise FetchFailure(url, "boom")
        return PageOutcome(title=url, path=tmp_path / "x.zip", bytes_written=1, image_count=1)

    reports = scrape_pages(["https://ok/1", "https://bad/2", "https://ok/3"], page, config, scrape=scrape)

    assert [report.url for report in reports] == ["https://ok/1", "https://bad/2", "https://ok/3"]
    assert [report.ok for report in reports] == [True, False, True]
    assert isinstance(reports[1].error, FetchFailure)
    assert reports[0].outcome.title == "https://ok/1"


def test_scrape_pages_empty():
    assert scrape_pages([], PageConfig(url="")) == []


def test_report_without_outcome_is_not_ok():
    assert not ScrapeReport(url="https://e/").ok


def test_scrape_pages_bad_selector_does_not_abort_batch(tmp_path, fake_fetch):
    html = '<h1>Good</h1><img src="https://e/i/a.png">'
    config = ScrapeConfig(output_root=tmp_path)
    fetch = fake_fetch()

    def scrape(url, page, config):
        if url.endswith("bad"):
            page = replace(page, image_selector="img[")
        return scrape_page(url, page, config, fetch=fetch)

    page = PageConfig(url="", title_selector="h1", image_selector="img")
    with patch("page_zipper.document.fetch_html", side_effect=lambda url, **kwargs: (html, url)):
        reports = scrape_pages(["https://e/good", "https://e/bad"], page, config, scrape=scrape)

    assert [report.ok for report in reports] == [True, False]
    assert isinstance(reports[1].error, ExtractionFailure)
    assert (tmp_path / "Good.zip").exists()


def test_scrape_pages_unexpected_error_is_reported(tmp_path):
    def scrape(url, page, config):
        raise KeyError("surprise")

    reports = scrape_pages(["https://e/1"], PageConfig(url=""), ScrapeConfig(output_root=tmp_path), scrape=scrape)

    assert not reports[0].ok
    assert isinstance(reports[0].error, ScrapeError)
    assert isinstance(reports[0].error.__cause__, KeyError)
