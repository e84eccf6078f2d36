# Shared fixtures: synthetic Lighthouse artifacts and run directories.

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

FULL_SCORES = {
    "performance": 0.95,
    "accessibility": 0.80,
    "best-practices": 1.0,
    "seo": 0.90,
}


def _lighthouse_html(url: str | None, scores: dict[str, Any] | None = None) -> str:
    payload: dict[str, Any] = {
        "lighthouseVersion": "12.0.0",
        "requestedUrl": url,
        "categories": {
            key: {"id": key, "title": key.title(), "score": value}
            for key, value in (scores or {}).items()
        },
    }
    if url is not None:
        payload["finalDisplayedUrl"] = url
    return (
        "<!doctype html><html lang='en'><head><meta charset='utf-8'>"
        "<title>Lighthouse Report</title></head><body>"
        "<div class='lh-root'></div>"
        f"<script>window.__LIGHTHOUSE_JSON__ = {json.dumps(payload)};</script>"
        "<script>console.log('report ready');</script>"
        "</body></html>"
    )


@pytest.fixture
def lighthouse_html() -> Callable[..., str]:
    return _lighthouse_html


@pytest.fixture
def make_run(tmp_path: Path) -> Callable[..., Path]:
    """
    make_run("audit_20250101_000000", {"page_a.html": ("https://a.test/", FULL_SCORES)})

    A value of None writes an artifact without any payload.
    """

    def _make(
        dir_name: str,
        reports: dict[str, tuple[str, dict[str, Any]] | None],
        *,
        info: str | None = None,
        root: Path | None = None,
    ) -> Path:
        run_dir = (root or tmp_path / "reports") / dir_name
        run_dir.mkdir(parents=True)
        for filename, entry in reports.items():
            if entry is None:
                content = "<html><body>lighthouse crashed</body></html>"
            else:
                content = _lighthouse_html(*entry)
            (run_dir / filename).write_text(content, encoding="utf-8")
        if info is not None:
            (run_dir / "info.txt").write_text(info, encoding="utf-8")
        return run_dir

    return _make


@pytest.fixture
def full_scores() -> dict[str, float]:
    return dict(FULL_SCORES)
