# batch_analyzer/cli.py
# Defines the command-line interface using argparse.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Mapping, Sequence

from batch_analyzer import __version__
from batch_analyzer.aggregate import (
    COLLECTION_SORTS,
    REPORT_SORTS,
    filter_collections,
    filter_reports,
    sort_collections,
    sort_reports,
)
from batch_analyzer.api import get_collection, get_run, load_collections
from batch_analyzer.cache import CacheConfig, FileCache
from batch_analyzer.config import RunSettings, apply_env_overrides, load_config
from batch_analyzer.errors import BatchAnalyzerError
from batch_analyzer.orchestrator import (
    AuditRunner,
    launch_detached,
    read_url_list,
    run_batch,
)
from batch_analyzer.progression import deltas, progression
from batch_analyzer.ui import (
    render_collections,
    render_progression,
    render_run,
    render_run_result,
    render_runs,
)

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NOT_FOUND = 2
EXIT_PARTIAL = 3

BANDS = ("high", "medium", "low")


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _load_urls(path: str, stdin: IO[str]) -> list[str]:
    if path == "-":
        return read_url_list(stdin)
    p = Path(path)
    if not p.exists():
        log.error(
            "Could not open or read '%s'. Please make sure the file exists.", path
        )
        raise FileNotFoundError(path)
    with p.open("r", encoding="utf-8") as f:
        urls = read_url_list(f)
    log.info("Loaded %d URLs from %s", len(urls), path)
    return urls


def _json_default(o: Any) -> Any:
    # Minimal, safe encoder for dataclasses, paths and datetimes.
    if isinstance(o, datetime):
        return o.isoformat()
    if isinstance(o, Path):
        return str(o)
    if is_dataclass(o):
        return asdict(o)  # type: ignore[arg-type]
    return str(o)


def _dump(data: Any, stdout: IO[str]) -> None:
    print(json.dumps(data, indent=2, default=_json_default), file=stdout)


def _add_reports_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-r",
        "--reports-dir",
        metavar="PATH",
        default=None,
        help="Directory holding run directories (default from config: reports).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Batch Lighthouse audits into timestamped report directories.",
        prog="batch_analyzer",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging output to stderr.",
    )
    parser.add_argument(
        "--config",
        metavar="PYPROJECT",
        default=None,
        help="pyproject.toml to read [tool.batch_analyzer] from (default: ./pyproject.toml).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- run ---
    run_parser = subparsers.add_parser(
        "run", help="Audit every URL in a file into a new run directory."
    )
    run_parser.add_argument(
        "-n",
        "--name",
        default=None,
        help="Run name, used as the directory prefix. Falls back to BATCH_ANALYZER_NAME.",
    )
    run_parser.add_argument(
        "-f",
        "--file",
        default=None,
        help="File with one URL per line, or '-' for stdin (default: urls.txt).",
    )
    _add_reports_dir(run_parser)
    run_parser.add_argument(
        "--prefix",
        default=None,
        help="Report filename prefix. Falls back to BATCH_ANALYZER_REPORT_PREFIX.",
    )
    run_parser.add_argument(
        "--note", default=None, help="Free text stored with the run."
    )
    run_parser.add_argument(
        "--run-dir",
        default=None,
        help=argparse.SUPPRESS,
    )
    run_parser.add_argument(
        "--detach",
        action="store_true",
        help="Start the run as a background process and return immediately.",
    )

    # --- list ---
    list_parser = subparsers.add_parser("list", help="List report collections.")
    _add_reports_dir(list_parser)
    list_parser.add_argument("--sort", choices=COLLECTION_SORTS, default="newest")
    list_parser.add_argument("--search", default="", help="Match name or URL.")
    list_parser.add_argument("--band", choices=BANDS, default=None)
    list_parser.add_argument("--json", dest="json_output", action="store_true")

    # --- show ---
    show_parser = subparsers.add_parser(
        "show", help="Show the runs of a collection and the reports of one run."
    )
    show_parser.add_argument("name", help="Collection name.")
    _add_reports_dir(show_parser)
    show_parser.add_argument(
        "--run", dest="run_name", default=None, help="Run directory (default: newest)."
    )
    show_parser.add_argument("--sort", choices=REPORT_SORTS, default="url")
    show_parser.add_argument("--search", default="", help="Match URL.")
    show_parser.add_argument("--band", choices=BANDS, default=None)
    show_parser.add_argument("--json", dest="json_output", action="store_true")

    # --- progression ---
    prog_parser = subparsers.add_parser(
        "progression", help="Show one URL's scores across a collection's runs."
    )
    prog_parser.add_argument("name", help="Collection name.")
    prog_parser.add_argument("url", help="Decoded URL as shown by 'show'.")
    _add_reports_dir(prog_parser)
    prog_parser.add_argument("--json", dest="json_output", action="store_true")

    # --- cache ---
    cache_parser = subparsers.add_parser(
        "cache", help="Manage the parsed-report cache."
    )
    cache_parser.add_argument(
        "--dir",
        dest="cache_dir",
        metavar="PATH",
        default=None,
        help="Cache directory to operate on (defaults to configured directory).",
    )
    cache_parser.add_argument(
        "--os-default",
        dest="cache_os_default",
        action="store_true",
        help="Use the OS-specific default cache directory.",
    )
    cache_sub = cache_parser.add_subparsers(dest="cache_cmd", required=True)
    cache_sub.add_parser("clear", help="Wipe the entire cache directory.")
    cache_sub.add_parser("stats", help="Show total items and size on disk.")

    return parser


def _human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    v = float(n)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    s = f"{v:.2f}".rstrip("0").rstrip(".")
    return f"{s} {units[i]}"


def _cache_command(args: argparse.Namespace, config: dict[str, Any], stdout: IO[str]) -> int:
    cfg = CacheConfig.from_config(config.get("cache", {}))
    cfg.enabled = True
    if args.cache_os_default:
        cfg.directory = "os-default"
    if args.cache_dir:
        cfg.directory = args.cache_dir
    fc = FileCache(cfg)
    try:
        if args.cache_cmd == "clear":
            removed = fc.clear_all()
            print(f"Cache cleared at: {fc.directory} ({removed} artifacts)", file=stdout)
            return EXIT_OK
        st = fc.stats()
        bytes_on_disk = int(st.get("bytes", 0))
        _dump(
            {
                "directory": st.get("directory", ""),
                "artifacts": int(st.get("artifacts", 0)),
                "parsed": int(st.get("parsed", 0)),
                "bytes": bytes_on_disk,
                "human_bytes": _human_bytes(bytes_on_disk),
            },
            stdout,
        )
        return EXIT_OK
    finally:
        fc.close()


async def _run_command(
    args: argparse.Namespace,
    config: dict[str, Any],
    stdout: IO[str],
    stdin: IO[str],
    runner: AuditRunner | None,
) -> int:
    name = args.name or config.get("name") or ""
    if args.prefix:
        config["report_prefix"] = args.prefix
    reports_dir = args.reports_dir or config["reports_dir"]
    settings = RunSettings.from_config(config)
    urls = _load_urls(args.file or config["urls_file"], stdin)

    if args.detach:
        launch = launch_detached(
            name,
            urls,
            reports_dir,
            prefix=settings.report_prefix,
            note=args.note,
            config_path=args.config,
        )
        print(
            f"Started analysis process {launch.pid} for {launch.url_count} URLs "
            f"in {launch.run_dir}",
            file=stdout,
        )
        return EXIT_OK

    log.info("Using report prefix: %s", settings.report_prefix)
    result = await run_batch(
        name,
        urls,
        reports_dir,
        settings,
        runner=runner,
        run_dir=args.run_dir,
        note=args.note,
    )
    render_run_result(result, file=stdout)
    return EXIT_PARTIAL if result.failures else EXIT_OK


def _collection_json(collection) -> dict[str, Any]:
    data = asdict(collection)
    last = collection.last_run
    data["last_run"] = last.full_name if last else None
    data["last_score"] = last.avg_score if last else None
    return data


async def async_main(
    argv: Sequence[str] | None = None,
    stdout: IO[str] | None = None,
    *,
    stdin: IO[str] | None = None,
    environ: Mapping[str, str] | None = None,
    runner: AuditRunner | None = None,
) -> int:
    """Async entry point for the command-line interface."""
    stdout = stdout or sys.stdout
    stdin = stdin or sys.stdin
    environ = environ if environ is not None else os.environ

    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    config = load_config(Path(args.config) if args.config else None)
    apply_env_overrides(config, environ)

    if args.command == "cache":
        return _cache_command(args, config, stdout)

    if args.command == "run":
        try:
            return await _run_command(args, config, stdout, stdin, runner)
        except FileNotFoundError:
            return EXIT_FATAL
        except BatchAnalyzerError as e:
            log.error("Error: %s", e)
            return EXIT_FATAL

    collections = load_collections(args.reports_dir, config=config)

    if args.command == "list":
        rows = sort_collections(
            filter_collections(collections, args.search, args.band), args.sort
        )
        if args.json_output:
            _dump({"reports": [_collection_json(c) for c in rows]}, stdout)
        else:
            render_collections(rows, file=stdout)
        return EXIT_OK

    collection = get_collection(collections, args.name)
    if collection is None:
        print(f"No collection named {args.name!r}", file=stdout)
        return EXIT_NOT_FOUND

    if args.command == "show":
        run = get_run(collection, args.run_name)
        if run is None:
            print(f"No run {args.run_name!r} in {collection.name}", file=stdout)
            return EXIT_NOT_FOUND
        reports = sort_reports(filter_reports(run.reports, args.search, args.band), args.sort)
        if args.json_output:
            _dump({"collection": collection.name, "run": run, "reports": reports}, stdout)
        else:
            render_runs(collection, file=stdout)
            render_run(run, reports, file=stdout)
        return EXIT_OK

    # args.command == "progression"
    points = progression(collection, args.url)
    if args.json_output:
        _dump(
            {
                "collection": collection.name,
                "url": args.url,
                "points": points,
                "deltas": deltas(points),
            },
            stdout,
        )
    else:
        render_progression(args.url, points, file=stdout)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous wrapper for the CLI entry point."""
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
