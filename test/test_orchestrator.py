from __future__ import annotations

import asyncio
import io
import sys
from datetime import datetime
from pathlib import Path

import pytest

from batch_analyzer.api import load_collections
from batch_analyzer.config import AuditSettings, RunSettings
from batch_analyzer.errors import DirectoryError, InvalidInput, SubprocessFailure
from batch_analyzer.orchestrator import (
    LighthouseRunner,
    create_run_dir,
    launch_detached,
    read_url_list,
    run_batch,
)

FIXED = datetime(2025, 1, 1, 9, 30, 0)


def clock() -> datetime:
    return FIXED


class FakeRunner:
    """Writes a tiny Lighthouse artifact, or fails for selected URLs."""

    def __init__(self, html_for, fail=()):
        self.html_for = html_for
        self.fail = set(fail)
        self.calls: list[tuple[str, Path]] = []
        self.active = 0
        self.max_active = 0

    async def audit(self, url: str, output_path: Path) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.calls.append((url, output_path))
        try:
            await asyncio.sleep(0)
            if url in self.fail:
                raise SubprocessFailure(url, 1, "Chrome crashed")
            output_path.write_text(self.html_for(url, {"performance": 0.8}), encoding="utf-8")
        finally:
            self.active -= 1


@pytest.fixture
def runner(lighthouse_html):
    return FakeRunner(lighthouse_html)


def test_read_url_list_trims_and_drops_blanks():
    assert read_url_list(["  https://a.test \n", "\n", "   ", "https://b.test"]) == [
        "https://a.test",
        "https://b.test",
    ]


def test_run_batch_creates_timestamped_dir_and_reports(tmp_path, runner):
    urls = ["https://a.test/", "", "https://b.test/"]
    result = asyncio.run(
        run_batch("audit", urls, tmp_path / "reports", RunSettings(report_prefix="page"), runner=runner, clock=clock)
    )
    assert result.run_dir == tmp_path / "reports" / "audit_20250101_093000"
    assert result.attempted == 2
    assert result.succeeded == 2
    assert result.failed == 0
    assert [u for u, _ in runner.calls] == ["https://a.test/", "https://b.test/"]
    for path in result.reports:
        assert path.parent == result.run_dir
        assert path.name.startswith("page_")
        assert path.exists()


def test_failures_are_recorded_and_do_not_abort(tmp_path, runner):
    runner.fail = {"https://b.test/"}
    urls = ["https://a.test/", "https://b.test/", "https://c.test/"]
    result = asyncio.run(run_batch("audit", urls, tmp_path, runner=runner, clock=clock))

    assert [u for u, _ in runner.calls] == urls
    assert result.attempted == 3
    assert result.succeeded == 2
    assert result.failed == 1
    [failure] = result.failures
    assert failure.url == "https://b.test/"
    assert failure.exit_code == 1
    assert failure.stderr == "Chrome crashed"
    html = sorted(p.name for p in result.run_dir.glob("*.html"))
    assert len(html) == 2


def test_urls_are_audited_one_at_a_time(tmp_path, runner):
    urls = [f"https://site.test/{i}" for i in range(5)]
    asyncio.run(run_batch("audit", urls, tmp_path, runner=runner, clock=clock))
    assert runner.max_active == 1


def test_same_url_twice_gets_two_files(tmp_path, runner):
    result = asyncio.run(
        run_batch("audit", ["https://a.test/", "https://a.test/"], tmp_path, runner=runner, clock=clock)
    )
    assert result.succeeded == 2
    assert result.reports[0] != result.reports[1]


def test_metadata_file_describes_the_run(tmp_path, runner):
    runner.fail = {"https://b.test/"}
    result = asyncio.run(
        run_batch(
            "audit",
            ["https://a.test/", "https://b.test/"],
            tmp_path,
            runner=runner,
            note="after CDN switch",
            clock=clock,
        )
    )
    assert result.metadata_path == result.run_dir / "info.txt"
    text = result.metadata_path.read_text(encoding="utf-8")
    assert text.startswith("after CDN switch\n")
    assert "name: audit" in text
    assert "started: 2025-01-01 09:30:00" in text
    assert "succeeded: 1" in text
    assert "failed url: https://b.test/" in text


def test_metadata_can_be_disabled(tmp_path, runner):
    result = asyncio.run(
        run_batch(
            "audit",
            ["https://a.test/"],
            tmp_path,
            RunSettings(write_metadata=False),
            runner=runner,
            clock=clock,
        )
    )
    assert result.metadata_path is None
    assert not (result.run_dir / "info.txt").exists()


@pytest.mark.parametrize(
    "name, urls",
    [
        ("", ["https://a.test/"]),
        ("   ", ["https://a.test/"]),
        ("audit", []),
        ("audit", ["", "  "]),
        ("../escape", ["https://a.test/"]),
    ],
)
def test_invalid_input_never_starts(tmp_path, runner, name, urls):
    with pytest.raises(InvalidInput):
        asyncio.run(run_batch(name, urls, tmp_path / "reports", runner=runner, clock=clock))
    assert runner.calls == []
    assert not (tmp_path / "reports").exists()


def test_existing_run_dir_is_never_reused(tmp_path, runner):
    asyncio.run(run_batch("audit", ["https://a.test/"], tmp_path, runner=runner, clock=clock))
    before = sorted(p.name for p in (tmp_path / "audit_20250101_093000").iterdir())

    with pytest.raises(DirectoryError) as excinfo:
        asyncio.run(run_batch("audit", ["https://b.test/"], tmp_path, runner=runner, clock=clock))
    assert excinfo.value.directory == tmp_path / "audit_20250101_093000"
    after = sorted(p.name for p in (tmp_path / "audit_20250101_093000").iterdir())
    assert before == after


def test_reports_dir_that_is_a_file_is_a_directory_error(tmp_path):
    blocker = tmp_path / "reports"
    blocker.write_text("oops")
    with pytest.raises(DirectoryError):
        create_run_dir(blocker, "audit", FIXED)


def test_pre_created_run_dir_is_adopted(tmp_path, runner):
    run_dir = create_run_dir(tmp_path, "audit", FIXED)
    result = asyncio.run(
        run_batch("audit", ["https://a.test/"], tmp_path, runner=runner, run_dir=run_dir)
    )
    assert result.run_dir == run_dir
    assert result.succeeded == 1


def test_adopting_a_foreign_or_used_dir_fails(tmp_path, runner):
    run_dir = create_run_dir(tmp_path, "audit", FIXED)
    with pytest.raises(DirectoryError):
        asyncio.run(run_batch("other", ["https://a.test/"], tmp_path, runner=runner, run_dir=run_dir))

    (run_dir / "report_a__x.html").write_text("already here")
    with pytest.raises(DirectoryError):
        asyncio.run(run_batch("audit", ["https://a.test/"], tmp_path, runner=runner, run_dir=run_dir))
    assert runner.calls == []


def test_written_run_is_visible_to_the_read_path(tmp_path, runner):
    asyncio.run(
        run_batch("audit", ["https://a.test/", "https://b.test/"], tmp_path, runner=runner, clock=clock)
    )
    config = {"cache": {"enabled": False}}
    [collection] = load_collections(tmp_path, config=config)
    assert collection.name == "audit"
    assert collection.urls == ["https://a.test/", "https://b.test/"]
    assert collection.last_run.avg_score == 80
    assert collection.last_run.info is not None


def test_lighthouse_command_line(tmp_path):
    runner = LighthouseRunner(
        AuditSettings(
            command=("npx", "lighthouse"),
            chrome_flags="--headless --no-sandbox",
            extra_args=("--quiet",),
        )
    )
    out = tmp_path / "r.html"
    assert runner.build_command("https://a.test/", out) == [
        "npx",
        "lighthouse",
        "https://a.test/",
        "--output=html",
        f"--output-path={out}",
        "--chrome-flags=--headless --no-sandbox",
        "--quiet",
    ]


def _python_runner(code: str, timeout: float | None = None) -> LighthouseRunner:
    return LighthouseRunner(
        AuditSettings(command=(sys.executable, "-c", code), chrome_flags="", timeout_seconds=timeout)
    )


def test_non_zero_exit_raises_subprocess_failure(tmp_path):
    runner = _python_runner("import sys; sys.stderr.write('no chrome'); sys.exit(2)")
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(runner.audit("https://a.test/", tmp_path / "r.html"))
    assert excinfo.value.exit_code == 2
    assert "no chrome" in excinfo.value.stderr


def test_success_without_artifact_is_a_failure(tmp_path):
    runner = _python_runner("pass")
    with pytest.raises(SubprocessFailure, match="Audit failed"):
        asyncio.run(runner.audit("https://a.test/", tmp_path / "r.html"))


def test_successful_subprocess_writes_artifact(tmp_path):
    code = (
        "import sys\n"
        "path = [a for a in sys.argv if a.startswith('--output-path=')][0].split('=', 1)[1]\n"
        "open(path, 'w').write('<html></html>')\n"
    )
    out = tmp_path / "r.html"
    asyncio.run(_python_runner(code).audit("https://a.test/", out))
    assert out.read_text() == "<html></html>"


def test_missing_executable_is_a_recorded_failure(tmp_path):
    runner = LighthouseRunner(AuditSettings(command=("definitely-not-lighthouse-xyz",)))
    result = asyncio.run(run_batch("audit", ["https://a.test/"], tmp_path, runner=runner, clock=clock))
    assert result.failed == 1
    assert result.failures[0].exit_code is None


def test_timeout_is_a_failure(tmp_path):
    runner = _python_runner("import time; time.sleep(10)", timeout=0.5)
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(runner.audit("https://a.test/", tmp_path / "r.html"))
    assert "Timed out" in excinfo.value.stderr


class _Stdin(io.StringIO):
    def close(self):
        self.captured = self.getvalue()
        super().close()


class FakePopen:
    instances: list["FakePopen"] = []

    def __init__(self, cmd, **kwargs):
        self.cmd = cmd
        self.kwargs = kwargs
        self.pid = 4242
        self.stdin = _Stdin()
        FakePopen.instances.append(self)


def test_launch_detached_returns_once_dir_exists(tmp_path):
    FakePopen.instances.clear()
    launch = launch_detached(
        "audit",
        ["https://a.test/", " ", "https://b.test/"],
        tmp_path / "reports",
        prefix="page",
        note="nightly",
        clock=clock,
        popen=FakePopen,
    )
    assert launch.pid == 4242
    assert launch.url_count == 2
    assert launch.run_dir == tmp_path / "reports" / "audit_20250101_093000"
    assert launch.run_dir.is_dir()

    [proc] = FakePopen.instances
    assert proc.cmd[:3] == [sys.executable, "-m", "batch_analyzer"]
    assert "--run-dir" in proc.cmd
    assert proc.cmd[proc.cmd.index("--run-dir") + 1] == str(launch.run_dir)
    assert proc.cmd[proc.cmd.index("--file") + 1] == "-"
    assert proc.cmd[proc.cmd.index("--prefix") + 1] == "page"
    assert proc.kwargs["start_new_session"] is True
    assert proc.stdin.captured == "https://a.test/\nhttps://b.test/\n"


def test_launch_detached_validates_before_spawning(tmp_path):
    FakePopen.instances.clear()
    with pytest.raises(InvalidInput):
        launch_detached("audit", [], tmp_path, popen=FakePopen)
    assert FakePopen.instances == []
