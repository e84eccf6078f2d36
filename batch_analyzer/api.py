# batch_analyzer/api.py
# The primary, programmer-facing API for the read path.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from batch_analyzer.aggregate import aggregate
from batch_analyzer.cache import CacheConfig, FileCache
from batch_analyzer.config import load_config
from batch_analyzer.errors import InvalidInput
from batch_analyzer.models import Collection, ProgressionPoint, Run
from batch_analyzer.parsing import ReportParser
from batch_analyzer.progression import progression
from batch_analyzer.scanner import scan

log = logging.getLogger(__name__)


def load_collections(
    reports_root: Path | str | None = None,
    *,
    config: dict[str, Any] | None = None,
    parser: ReportParser | None = None,
) -> list[Collection]:
    """
    Scans the reports root and rebuilds every collection from disk.

    Args:
        reports_root: Directory holding run directories. Defaults to the
            configured `reports_dir`.
        config: Merged configuration; loaded from pyproject.toml if omitted.
        parser: Artifact parser; defaults to one backed by the configured cache.

    Returns:
        Collections in first-seen order, each with runs newest first.
    """
    config = config if config is not None else load_config()
    root = Path(reports_root if reports_root is not None else config["reports_dir"])

    raw_runs = scan(
        root,
        artifact_extension=config.get("artifact_extension", ".html"),
        metadata_filename=config.get("metadata_filename", "info.txt"),
    )

    cache: FileCache | None = None
    if parser is None:
        cache = FileCache(CacheConfig.from_config(config.get("cache", {})))
        parser = ReportParser(cache=cache)
    try:
        collections = aggregate(raw_runs, parser)
    finally:
        if cache is not None:
            cache.close()

    log.info("Built %d collections from %d runs", len(collections), len(raw_runs))
    return collections


def get_collection(collections: list[Collection], name: str) -> Collection | None:
    for collection in collections:
        if collection.name == name:
            return collection
    return None


def get_run(collection: Collection, full_name: str | None = None) -> Run | None:
    """A run by directory name, or the newest run when no name is given."""
    if full_name is None:
        return collection.last_run
    for run in collection.runs:
        if run.full_name == full_name:
            return run
    return None


def get_progression(
    collections: list[Collection], name: str, url: str
) -> list[ProgressionPoint]:
    collection = get_collection(collections, name)
    if collection is None:
        return []
    return progression(collection, url)


def resolve_report_path(
    reports_root: Path | str, run_dir_name: str, filename: str
) -> Path:
    """
    Path of one artifact, refusing anything that escapes the reports root.

    Raises:
        InvalidInput: the combined path leaves the reports root.
        FileNotFoundError: no such artifact.
    """
    root = Path(reports_root).resolve()
    path = (root / run_dir_name / filename).resolve()
    if root not in path.parents:
        raise InvalidInput(f"Path escapes the reports directory: {run_dir_name}/{filename}")
    if not path.is_file():
        raise FileNotFoundError(str(path))
    return path
