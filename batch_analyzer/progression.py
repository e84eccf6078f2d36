# batch_analyzer/progression.py
# Chronological score series for one URL across a collection's runs.

from __future__ import annotations

from batch_analyzer.models import Collection, ProgressionPoint


def progression(collection: Collection, url: str) -> list[ProgressionPoint]:
    """
    One point per run that audited `url`, oldest first.

    Runs without a report for the URL are skipped rather than zero-filled.
    Missing categories in a report read as 0.
    """
    points: list[ProgressionPoint] = []
    for run in collection.runs:
        report = run.report_for(url)
        if report is None:
            continue
        points.append(
            ProgressionPoint(
                timestamp=run.timestamp,
                performance=report.metrics.get("performance", 0),
                accessibility=report.metrics.get("accessibility", 0),
                best_practices=report.metrics.get("best_practices", 0),
                seo=report.metrics.get("seo", 0),
                overall=report.score or 0,
                info=run.info,
            )
        )
    # collection runs are newest first
    points.reverse()
    return points


def deltas(points: list[ProgressionPoint]) -> list[dict[str, int]]:
    """Change of every value against the first point; the first is all zeros."""
    if not points:
        return []
    first = points[0].values()
    return [
        {k: v - first[k] for k, v in point.values().items()} for point in points
    ]
