# Defines the data structures shared by the write path (orchestrator) and the
# read path (scanner, parser, aggregator, progression).

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

# Metric names as exposed to callers, in display order.
Category = Literal["performance", "accessibility", "best_practices", "seo"]
CATEGORIES: tuple[Category, ...] = (
    "performance",
    "accessibility",
    "best_practices",
    "seo",
)

ScoreBand = Literal["high", "medium", "low"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ParsedReport:
    """Scores extracted from one artifact's embedded payload."""

    url: str | None
    metrics: dict[str, int] = field(default_factory=dict)
    score: int = 0
    url_decoded: bool = True


@dataclass
class ReportFile:
    """
    One artifact inside a run directory, as seen by the read path.

    `score` is None when the artifact carried no usable payload. A payload
    with zero categories has score 0.
    """

    filename: str
    url: str | None = None
    score: int | None = None
    metrics: dict[str, int] = field(default_factory=dict)
    url_decoded: bool = True

    @property
    def parsed(self) -> bool:
        return self.score is not None


@dataclass
class RawRunDir:
    """A run directory found by the scanner, before any artifact is parsed."""

    name: str
    timestamp: str
    full_name: str
    path: Path
    artifacts: list[Path] = field(default_factory=list)
    info: str | None = None


@dataclass
class Run:
    """A single analysis run, i.e. one timestamped directory."""

    name: str
    timestamp: str
    full_name: str
    reports: list[ReportFile] = field(default_factory=list)
    avg_score: int = 0
    info: str | None = None

    @property
    def started_at(self) -> datetime:
        return datetime.strptime(self.timestamp, TIMESTAMP_FORMAT)

    @property
    def unparsed_count(self) -> int:
        return sum(1 for r in self.reports if not r.parsed)

    @property
    def undecoded_count(self) -> int:
        return sum(1 for r in self.reports if not r.url_decoded)

    def report_for(self, url: str) -> ReportFile | None:
        for report in self.reports:
            if report.url == url:
                return report
        return None

    def average_metrics(self) -> dict[str, float]:
        """Per-category mean over all reports, missing values counted as 0."""
        if not self.reports:
            return {c: 0.0 for c in CATEGORIES}
        n = len(self.reports)
        return {
            c: sum(r.metrics.get(c, 0) for r in self.reports) / n for c in CATEGORIES
        }


@dataclass
class Collection:
    """
    All runs sharing a base name. Computed on every read, never stored.
    Runs are ordered newest first.
    """

    name: str
    urls: list[str] = field(default_factory=list)
    runs: list[Run] = field(default_factory=list)

    @property
    def last_run(self) -> Optional[Run]:
        return self.runs[0] if self.runs else None


@dataclass
class ProgressionPoint:
    """One URL's scores in one run."""

    timestamp: str
    performance: int = 0
    accessibility: int = 0
    best_practices: int = 0
    seo: int = 0
    overall: int = 0
    info: str | None = None

    def values(self) -> dict[str, int]:
        return {
            "performance": self.performance,
            "accessibility": self.accessibility,
            "best_practices": self.best_practices,
            "seo": self.seo,
            "overall": self.overall,
        }


@dataclass
class AuditFailure:
    """A URL whose audit subprocess failed. The batch carried on without it."""

    url: str
    exit_code: int | None
    stderr: str = ""


@dataclass
class RunResult:
    """Outcome of one orchestrator invocation."""

    run_dir: Path
    attempted: int = 0
    reports: list[Path] = field(default_factory=list)
    failures: list[AuditFailure] = field(default_factory=list)
    metadata_path: Path | None = None

    @property
    def succeeded(self) -> int:
        return len(self.reports)

    @property
    def failed(self) -> int:
        return len(self.failures)


@dataclass
class DetachedLaunch:
    """Handle returned when a run is started as an independent process."""

    pid: int
    run_dir: Path
    url_count: int
