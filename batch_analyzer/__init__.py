# Entrypoint for the batch_analyzer package.
# This file makes the public API available to programmers.

from __future__ import annotations

from batch_analyzer.__about__ import __version__
from batch_analyzer.aggregate import aggregate, sort_collections
from batch_analyzer.api import (
    get_collection,
    get_progression,
    get_run,
    load_collections,
    resolve_report_path,
)
from batch_analyzer.config import RunSettings, load_config
from batch_analyzer.errors import (
    ArtifactParseFailure,
    BatchAnalyzerError,
    DecodeFailure,
    DirectoryError,
    InvalidInput,
    SubprocessFailure,
)
from batch_analyzer.models import (
    Collection,
    ProgressionPoint,
    ReportFile,
    Run,
    RunResult,
)
from batch_analyzer.orchestrator import launch_detached, run_batch
from batch_analyzer.parsing import ReportParser, parse_report
from batch_analyzer.progression import progression
from batch_analyzer.sanitize import url_to_filename
from batch_analyzer.scanner import scan

# The __all__ variable defines the public API of the package.
# When a user writes `from batch_analyzer import *`, only these names will be imported.
__all__ = [
    "aggregate",
    "sort_collections",
    "get_collection",
    "get_progression",
    "get_run",
    "load_collections",
    "resolve_report_path",
    "RunSettings",
    "load_config",
    "ArtifactParseFailure",
    "BatchAnalyzerError",
    "DecodeFailure",
    "DirectoryError",
    "InvalidInput",
    "SubprocessFailure",
    "Collection",
    "ProgressionPoint",
    "ReportFile",
    "Run",
    "RunResult",
    "launch_detached",
    "run_batch",
    "ReportParser",
    "parse_report",
    "progression",
    "url_to_filename",
    "scan",
    "__version__",
]
