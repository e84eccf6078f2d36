# batch_analyzer/ui.py
# Presentation-only utilities for CLI output.
from __future__ import annotations

from typing import IO, Iterable

from batch_analyzer.aggregate import score_band
from batch_analyzer.models import Collection, ProgressionPoint, ReportFile, Run, RunResult
from batch_analyzer.parsing import round_half_up
from batch_analyzer.progression import deltas


def _writeln(text: str = "", *, file: IO[str]) -> None:
    file.write(text + "\n")


def _fmt(score: int | None) -> str:
    return "N/A" if score is None else str(score)


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def render_run_result(result: RunResult, *, file: IO[str]) -> None:
    _writeln(f"\nRun directory: {result.run_dir}", file=file)
    _writeln(
        f"Attempted: {result.attempted}  Succeeded: {result.succeeded}  "
        f"Failed: {result.failed}",
        file=file,
    )
    if result.failures:
        _writeln("\n--- Failed URLs ---", file=file)
        for failure in result.failures:
            _writeln(f"- {failure.url} (exit code {failure.exit_code})", file=file)


def render_collections(collections: Iterable[Collection], *, file: IO[str]) -> None:
    rows = list(collections)
    if not rows:
        _writeln("No reports found.", file=file)
        return
    for c in rows:
        last = c.last_run
        if last is None:
            continue
        _writeln(
            f"{c.name:<30} runs={len(c.runs):<3} pages={len(last.reports):<3} "
            f"score={last.avg_score:<3} [{score_band(last.avg_score)}] "
            f"last={last.timestamp}",
            file=file,
        )


def render_runs(collection: Collection, *, file: IO[str]) -> None:
    _writeln(f"{collection.name}: {len(collection.runs)} run(s)", file=file)
    for run in collection.runs:
        _writeln(
            f"- {run.full_name}  score={run.avg_score}  pages={len(run.reports)}",
            file=file,
        )


def render_run(run: Run, reports: Iterable[ReportFile], *, file: IO[str]) -> None:
    _writeln(f"\n--- {run.full_name} ({run.timestamp}) ---", file=file)
    _writeln(f"Overall score: {run.avg_score}", file=file)
    averages = run.average_metrics()
    _writeln(
        "Averages: "
        + "  ".join(f"{k}={round_half_up(v)}" for k, v in averages.items()),
        file=file,
    )
    if run.unparsed_count:
        _writeln(f"Reports without audit data: {run.unparsed_count}", file=file)
    _writeln("", file=file)
    for r in reports:
        m = r.metrics
        _writeln(
            f"[{_fmt(r.score):>3}] perf={_fmt(m.get('performance'))} "
            f"a11y={_fmt(m.get('accessibility'))} "
            f"bp={_fmt(m.get('best_practices'))} seo={_fmt(m.get('seo'))}  "
            f"{r.url or '(unknown url)'}  {r.filename}",
            file=file,
        )
    if run.info:
        _writeln("\n--- Info ---", file=file)
        _writeln(run.info.rstrip(), file=file)


def render_progression(
    url: str, points: list[ProgressionPoint], *, file: IO[str]
) -> None:
    _writeln(f"Progression for: {url}", file=file)
    if not points:
        _writeln("No reports for this URL.", file=file)
        return
    if len(points) < 2:
        _writeln("Not enough data to display progression.", file=file)
    for point, delta in zip(points, deltas(points)):
        cells = []
        for key, value in point.values().items():
            cell = f"{key}={value}"
            if point is not points[0]:
                cell += f"({_signed(delta[key])})"
            cells.append(cell)
        _writeln(f"{point.timestamp}  " + "  ".join(cells), file=file)
