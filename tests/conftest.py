"""Fixtures: fake fetchers and an isolated working directory."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterable, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from page_zipper.errors import FetchFailure


class FakeFetch:
    """Callable standing in for the HTTP fetcher; records every URL it sees."""

    def __init__(
        self,
        payloads: Optional[Dict[str, bytes]] = None,
        failing: Iterable[str] = (),
        delay: Optional[Callable[[str], float]] = None,
    ) -> None:
        self.payloads = payloads or {}
        self.failing = set(failing)
        self.delay = delay
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, url: str) -> bytes:
        with self._lock:
            self.calls.append(url)
        if self.delay is not None:
            threading.Event().wait(self.delay(url))
        if url in self.failing:
            raise FetchFailure(url, "404 Client Error")
        return self.payloads.get(url, url.encode("utf-8"))


@pytest.fixture
def fake_fetch() -> Callable[..., FakeFetch]:
    return FakeFetch


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test from an empty directory so ``downloads/`` lands there."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def make_response(
    content: bytes = b"",
    status: int = 200,
    text: str = "",
    url: str = "",
) -> MagicMock:
    """Build a mock ``requests.Response`` usable as a context manager."""
    resp = MagicMock()
    resp.content = content
    resp.text = text
    resp.url = url
    resp.status_code = status
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    else:
        resp.raise_for_status.return_value = None
    return resp
