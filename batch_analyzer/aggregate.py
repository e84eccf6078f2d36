# batch_analyzer/aggregate.py
"""
Combines scanned run directories and parsed artifacts into Runs and
Collections.

A Collection is a view: aggregate() recomputes every one of them from the
RawRunDirs it is given and nothing is stored.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Literal, Protocol, Sequence

from batch_analyzer.models import (
    CATEGORIES,
    Collection,
    ParsedReport,
    RawRunDir,
    ReportFile,
    Run,
    ScoreBand,
)
from batch_analyzer.parsing import mean_score

log = logging.getLogger(__name__)

CollectionSort = Literal["newest", "oldest", "name", "score", "pages"]
ReportSort = Literal[
    "url", "performance", "accessibility", "best_practices", "seo", "overall"
]

COLLECTION_SORTS: tuple[str, ...] = ("newest", "oldest", "name", "score", "pages")
REPORT_SORTS: tuple[str, ...] = ("url",) + CATEGORIES + ("overall",)


class ArtifactParser(Protocol):
    def parse_file(self, path) -> ParsedReport | None: ...


def score_band(score: int | None) -> ScoreBand:
    """high >= 80, medium >= 50, low otherwise. Unknown counts as 0."""
    value = score or 0
    if value >= 80:
        return "high"
    if value >= 50:
        return "medium"
    return "low"


def build_run(raw: RawRunDir, parser: ArtifactParser) -> Run:
    reports: list[ReportFile] = []
    for path in raw.artifacts:
        parsed = parser.parse_file(path)
        if parsed is None:
            reports.append(ReportFile(filename=path.name))
            continue
        reports.append(
            ReportFile(
                filename=path.name,
                url=parsed.url,
                score=parsed.score,
                metrics=dict(parsed.metrics),
                url_decoded=parsed.url_decoded,
            )
        )

    # Artifacts without a payload pull the run average down as zeros.
    avg = mean_score([r.score or 0 for r in reports])
    run = Run(
        name=raw.name,
        timestamp=raw.timestamp,
        full_name=raw.full_name,
        reports=reports,
        avg_score=avg,
        info=raw.info,
    )
    if run.unparsed_count:
        log.warning(
            "%s: %d of %d reports had no audit data",
            raw.full_name,
            run.unparsed_count,
            len(reports),
        )
    return run


def collection_urls(runs: Iterable[Run]) -> list[str]:
    """Sorted union of every decoded URL seen in any of the runs."""
    urls: set[str] = set()
    for run in runs:
        urls.update(r.url for r in run.reports if r.url)
    return sorted(urls)


def aggregate(
    raw_runs: Iterable[RawRunDir], parser: ArtifactParser
) -> list[Collection]:
    """
    Groups runs by base name. Collections come back in first-seen order with
    their runs sorted newest first.
    """
    grouped: dict[str, list[Run]] = {}
    for raw in raw_runs:
        grouped.setdefault(raw.name, []).append(build_run(raw, parser))

    collections: list[Collection] = []
    for name, runs in grouped.items():
        # sorted() is stable under reverse=True, so equal timestamps keep scan order
        ordered = sorted(runs, key=lambda r: r.timestamp, reverse=True)
        collections.append(
            Collection(name=name, urls=collection_urls(ordered), runs=ordered)
        )
    return collections


def _last_timestamp(c: Collection) -> str:
    return c.last_run.timestamp if c.last_run else ""


def _last_score(c: Collection) -> int:
    return c.last_run.avg_score if c.last_run else 0


def _last_pages(c: Collection) -> int:
    return len(c.last_run.reports) if c.last_run else 0


_COLLECTION_KEYS: dict[str, tuple[Callable[[Collection], object], bool]] = {
    "newest": (_last_timestamp, True),
    "oldest": (_last_timestamp, False),
    "name": (lambda c: c.name.casefold(), False),
    "score": (_last_score, True),
    "pages": (_last_pages, True),
}


def sort_collections(
    collections: Sequence[Collection], by: CollectionSort = "newest"
) -> list[Collection]:
    """Stable sort; ties keep their input order."""
    try:
        key, descending = _COLLECTION_KEYS[by]
    except KeyError:
        raise ValueError(f"Unknown collection sort: {by!r}") from None
    return sorted(collections, key=key, reverse=descending)  # type: ignore[arg-type]


def filter_collections(
    collections: Iterable[Collection],
    search: str = "",
    band: ScoreBand | None = None,
) -> list[Collection]:
    """
    Keeps collections whose name or any URL contains `search`
    (case-insensitive) and whose last run falls in `band`.
    """
    needle = search.casefold()
    kept = []
    for c in collections:
        if needle and needle not in c.name.casefold():
            if not any(needle in u.casefold() for u in c.urls):
                continue
        if band is not None and score_band(_last_score(c)) != band:
            continue
        kept.append(c)
    return kept


def sort_reports(reports: Sequence[ReportFile], by: ReportSort = "url") -> list[ReportFile]:
    if by == "url":
        return sorted(reports, key=lambda r: (r.url or "").casefold())
    if by == "overall":
        return sorted(reports, key=lambda r: r.score or 0, reverse=True)
    if by in CATEGORIES:
        return sorted(reports, key=lambda r: r.metrics.get(by, 0), reverse=True)
    raise ValueError(f"Unknown report sort: {by!r}")


def filter_reports(
    reports: Iterable[ReportFile],
    search: str = "",
    band: ScoreBand | None = None,
) -> list[ReportFile]:
    needle = search.casefold()
    return [
        r
        for r in reports
        if (not needle or needle in (r.url or "").casefold())
        and (band is None or score_band(r.score) == band)
    ]
