# batch_analyzer/scanner.py
"""
Finds run directories under a reports root.

Only directories named `<base_name>_<YYYYMMDD>_<HHMMSS>` count as runs;
anything else is skipped without complaint.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path

from batch_analyzer.models import RawRunDir

log = logging.getLogger(__name__)

RUN_DIR_PATTERN = re.compile(r"^(.+)_(\d{8})_(\d{6})$")


def format_timestamp(date: str, time: str) -> str:
    """"20250101", "093000" -> "2025-01-01 09:30:00"."""
    return (
        f"{date[0:4]}-{date[4:6]}-{date[6:8]} "
        f"{time[0:2]}:{time[2:4]}:{time[4:6]}"
    )


def parse_run_dir_name(dir_name: str) -> tuple[str, str] | None:
    """Returns (base_name, timestamp) for a run directory name, else None."""
    match = RUN_DIR_PATTERN.match(dir_name)
    if not match:
        return None
    name, date, time = match.groups()
    return name, format_timestamp(date, time)


def _read_info(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.error("Error reading %s: %s", path, e)
        return None


def scan(
    reports_root: Path | str,
    *,
    artifact_extension: str = ".html",
    metadata_filename: str = "info.txt",
) -> list[RawRunDir]:
    """
    Lists run directories directly under `reports_root`, sorted by name.

    A missing root is an empty result, not an error.
    """
    root = Path(reports_root)
    if not root.is_dir():
        log.info("Reports directory %s does not exist yet", root)
        return []

    runs: list[RawRunDir] = []
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if not entry.is_dir():
            continue
        parsed = parse_run_dir_name(entry.name)
        if parsed is None:
            log.debug("Skipping non-run directory %s", entry.name)
            continue
        name, timestamp = parsed

        try:
            artifacts = sorted(
                (
                    p
                    for p in entry.iterdir()
                    if p.is_file() and p.name.endswith(artifact_extension)
                ),
                key=lambda p: p.name,
            )
        except OSError as e:
            log.error("Could not list %s: %s", entry, e)
            artifacts = []

        runs.append(
            RawRunDir(
                name=name,
                timestamp=timestamp,
                full_name=entry.name,
                path=entry,
                artifacts=artifacts,
                info=_read_info(entry / metadata_filename),
            )
        )
    log.info("Found %d run directories in %s", len(runs), root)
    return runs
