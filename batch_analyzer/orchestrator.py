# batch_analyzer/orchestrator.py
"""
Runs the audit engine once per URL and collects the reports in a fresh,
timestamped run directory.

- URLs are audited strictly one after another, in input order. The audit
  engine is heavy and measures badly under concurrent load.
- A failed audit is recorded and the batch moves on to the next URL.
- The orchestrator only ever adds files to a directory it created itself.
"""
from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Protocol

from batch_analyzer.config import AuditSettings, RunSettings
from batch_analyzer.errors import DirectoryError, InvalidInput, SubprocessFailure
from batch_analyzer.models import AuditFailure, DetachedLaunch, RunResult
from batch_analyzer.sanitize import unique_report_path
from batch_analyzer.scanner import parse_run_dir_name

log = logging.getLogger(__name__)

RUN_DIR_TIME_FORMAT = "%Y%m%d_%H%M%S"

Clock = Callable[[], datetime]


class AuditRunner(Protocol):
    async def audit(self, url: str, output_path: Path) -> None:
        """Writes a report for `url` to `output_path` or raises SubprocessFailure."""
        ...


class LighthouseRunner:
    """Drives the `lighthouse` CLI as a subprocess."""

    def __init__(self, settings: AuditSettings | None = None) -> None:
        self.settings = settings or AuditSettings()

    def build_command(self, url: str, output_path: Path) -> list[str]:
        cmd = [
            *self.settings.command,
            url,
            "--output=html",
            f"--output-path={output_path}",
        ]
        if self.settings.chrome_flags:
            cmd.append(f"--chrome-flags={self.settings.chrome_flags}")
        cmd.extend(self.settings.extra_args)
        return cmd

    async def audit(self, url: str, output_path: Path) -> None:
        cmd = self.build_command(url, output_path)
        log.debug("Running: %s", cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SubprocessFailure(
                url, None, f"Failed to execute {cmd[0]!r}. Is it installed? ({e})"
            ) from e

        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.settings.timeout_seconds
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise SubprocessFailure(
                url, None, f"Timed out after {self.settings.timeout_seconds}s"
            ) from None

        if proc.returncode != 0:
            raise SubprocessFailure(
                url, proc.returncode, stderr.decode("utf-8", errors="replace")
            )
        if not output_path.exists():
            raise SubprocessFailure(url, proc.returncode, "No report file was written")


def read_url_list(lines: Iterable[str]) -> list[str]:
    """Trims every line and drops blank ones, keeping order."""
    return [line.strip() for line in lines if line.strip()]


def _validate(name: str, urls: Iterable[str]) -> tuple[str, list[str]]:
    clean_name = (name or "").strip()
    if not clean_name:
        raise InvalidInput(
            "Name is required. Provide it via --name or the BATCH_ANALYZER_NAME "
            "environment variable."
        )
    if clean_name in (".", "..") or "/" in clean_name or "\\" in clean_name:
        raise InvalidInput(f"Run name must not contain path separators: {clean_name!r}")
    url_list = read_url_list(urls)
    if not url_list:
        raise InvalidInput("At least one URL is required")
    return clean_name, url_list


def run_dir_name(name: str, started_at: datetime) -> str:
    return f"{name}_{started_at.strftime(RUN_DIR_TIME_FORMAT)}"


def create_run_dir(reports_dir: Path | str, name: str, started_at: datetime) -> Path:
    """Creates `reports_dir/<name>_<YYYYMMDD>_<HHMMSS>`, refusing to reuse one."""
    root = Path(reports_dir)
    run_dir = root / run_dir_name(name, started_at)
    try:
        if not root.exists():
            root.mkdir(parents=True, exist_ok=True)
            log.info("Created reports directory: %s", root)
        run_dir.mkdir()
    except FileExistsError as e:
        raise DirectoryError(run_dir, "a run with this name and timestamp exists") from e
    except OSError as e:
        raise DirectoryError(run_dir, str(e)) from e
    log.info("Created output directory: %s", run_dir)
    return run_dir


def adopt_run_dir(run_dir: Path | str, name: str) -> Path:
    """
    Accepts a run directory created ahead of time (see launch_detached).
    It must be named for this run and still be empty.
    """
    path = Path(run_dir)
    parsed = parse_run_dir_name(path.name)
    if parsed is None or parsed[0] != name:
        raise DirectoryError(path, f"not a run directory for {name!r}")
    if not path.is_dir():
        raise DirectoryError(path, "does not exist")
    if any(path.iterdir()):
        raise DirectoryError(path, "already contains files")
    return path


def describe_run(
    name: str,
    started_at: datetime,
    finished_at: datetime,
    result: RunResult,
    note: str | None = None,
) -> str:
    lines = []
    if note:
        lines.extend([note.strip(), ""])
    lines.extend(
        [
            f"name: {name}",
            f"started: {started_at:%Y-%m-%d %H:%M:%S}",
            f"finished: {finished_at:%Y-%m-%d %H:%M:%S}",
            f"urls: {result.attempted}",
            f"succeeded: {result.succeeded}",
            f"failed: {result.failed}",
        ]
    )
    for failure in result.failures:
        lines.append(f"  failed url: {failure.url}")
    return "\n".join(lines) + "\n"


def write_metadata(run_dir: Path, filename: str, text: str) -> Path:
    path = run_dir / filename
    # "x" so an existing file is never rewritten
    with path.open("x", encoding="utf-8") as f:
        f.write(text)
    return path


async def run_batch(
    name: str,
    urls: Iterable[str],
    reports_dir: Path | str,
    settings: RunSettings | None = None,
    *,
    runner: AuditRunner | None = None,
    run_dir: Path | str | None = None,
    note: str | None = None,
    clock: Clock | None = None,
) -> RunResult:
    """
    Audits every URL into a new run directory and reports what happened.

    Args:
        name: Base name of the run; becomes the directory prefix.
        urls: URL entries, one per item. Blank entries are ignored.
        reports_dir: Root under which the run directory is created.
        settings: Report prefix, filename limits, audit command and so on.
        runner: Audit runner; defaults to LighthouseRunner(settings.audit).
        run_dir: An already-created, empty run directory to fill instead.
        note: Free text written at the top of the metadata file.
        clock: Source of the current time.

    Raises:
        InvalidInput: empty name or no URLs.
        DirectoryError: the run directory cannot be created or adopted.
    """
    settings = settings or RunSettings()
    clock = clock or datetime.now
    clean_name, url_list = _validate(name, urls)

    started_at = clock()
    if run_dir is None:
        target = create_run_dir(reports_dir, clean_name, started_at)
    else:
        target = adopt_run_dir(run_dir, clean_name)

    runner = runner or LighthouseRunner(settings.audit)
    result = RunResult(run_dir=target)
    taken: set[str] = set()

    for index, url in enumerate(url_list, start=1):
        log.info("Analyzing URL (%d/%d): %s", index, len(url_list), url)
        report_path = unique_report_path(
            target,
            url,
            settings.report_prefix,
            taken=taken,
            max_length=settings.max_filename_length,
            suffix_length=settings.suffix_length,
            extension=settings.artifact_extension,
        )
        taken.add(report_path.name)
        result.attempted += 1
        try:
            await runner.audit(url, report_path)
        except SubprocessFailure as e:
            log.error("Audit failed for URL: %s", url)
            if e.stderr:
                log.error("Stderr: %s", e.stderr)
            result.failures.append(AuditFailure(url, e.exit_code, e.stderr))
            continue
        log.info("Successfully generated report: %s", report_path)
        result.reports.append(report_path)

    if settings.write_metadata:
        text = describe_run(clean_name, started_at, clock(), result, note)
        try:
            result.metadata_path = write_metadata(
                target, settings.metadata_filename, text
            )
        except OSError as e:
            log.error("Could not write run metadata in %s: %s", target, e)

    log.info(
        "Analysis complete: %d of %d succeeded. Reports are saved in '%s'",
        result.succeeded,
        result.attempted,
        target,
    )
    return result


def launch_detached(
    name: str,
    urls: Iterable[str],
    reports_dir: Path | str,
    *,
    prefix: str | None = None,
    note: str | None = None,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    popen: Callable[..., subprocess.Popen] = subprocess.Popen,
) -> DetachedLaunch:
    """
    Starts a whole batch as an independent process and returns at once.

    The run directory exists when this returns; completion shows up only as
    reports appearing in it. No job status is tracked.
    """
    clean_name, url_list = _validate(name, urls)
    run_dir = create_run_dir(reports_dir, clean_name, (clock or datetime.now)())

    cmd = [sys.executable, "-m", "batch_analyzer"]
    if config_path:
        cmd += ["--config", str(config_path)]
    cmd += [
        "run",
        "--name",
        clean_name,
        "--file",
        "-",
        "--reports-dir",
        str(reports_dir),
        "--run-dir",
        str(run_dir),
    ]
    if prefix:
        cmd += ["--prefix", prefix]
    if note:
        cmd += ["--note", note]

    proc = popen(
        cmd,
        stdin=subprocess.PIPE,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        text=True,
    )
    if proc.stdin is not None:
        proc.stdin.write("\n".join(url_list) + "\n")
        proc.stdin.close()
    log.info("Started analysis process %s for %s", proc.pid, run_dir)
    return DetachedLaunch(pid=proc.pid, run_dir=run_dir, url_count=len(url_list))
