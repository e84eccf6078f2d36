# batch_analyzer/config.py
"""
Centralized configuration management.

Handles loading defaults, merging in settings from pyproject.toml,
and applying environment overrides. The result is turned into an explicit
RunSettings value that the orchestrator receives at call time.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import tomli

from batch_analyzer.sanitize import body_budget

log = logging.getLogger(__name__)

ENV_NAME = "BATCH_ANALYZER_NAME"
ENV_REPORT_PREFIX = "BATCH_ANALYZER_REPORT_PREFIX"

# This is the baseline configuration dictionary.
DEFAULT_CONFIG: dict[str, Any] = {
    "name": None,
    "report_prefix": "report",
    "reports_dir": "reports",
    "urls_file": "urls.txt",
    "max_filename_length": 120,
    "suffix_length": 6,
    "artifact_extension": ".html",
    "metadata_filename": "info.txt",
    "write_metadata": True,
    "audit": {
        "command": ["lighthouse"],
        "chrome_flags": "--headless --no-sandbox --disable-cache",
        "extra_args": [],
        "timeout_seconds": None,
    },
    "cache": {
        "enabled": True,
        "directory": ".batch_analyzer_cache",
        "expire_seconds": 7 * 24 * 3600,  # 1 week; keys already include mtime
    },
}


def _deep_merge_dict(
    base: MutableMapping[str, Any], overrides: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    """Recursively merge dicts."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            base[key] = _deep_merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def load_config(pyproject_path: Path | None = None) -> dict[str, Any]:
    """
    Loads configuration from defaults and merges settings from pyproject.toml.

    1. Starts with DEFAULT_CONFIG.
    2. Looks for `pyproject.toml` (current directory unless a path is given).
    3. If found, merges settings from `[tool.batch_analyzer]` over the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if pyproject_path is None:
        pyproject_path = Path.cwd() / "pyproject.toml"

    if not pyproject_path.exists():
        log.debug(
            "No pyproject.toml found at %s. Using default config.", pyproject_path
        )
        return config

    try:
        with pyproject_path.open("rb") as f:
            toml_data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        log.warning(
            "Failed to load or parse %s: %s. Using default config.",
            pyproject_path,
            e,
        )
        return config

    project_config = toml_data.get("tool", {}).get("batch_analyzer", {})
    if project_config:
        log.info("Loading config from %s", pyproject_path)
        config = _deep_merge_dict(config, project_config)  # type: ignore[assignment]
    else:
        log.debug("No [tool.batch_analyzer] section in %s.", pyproject_path)
    return config


def apply_env_overrides(
    config: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Applies BATCH_ANALYZER_* variables from an explicitly passed mapping."""
    name = environ.get(ENV_NAME)
    if name:
        log.info("Using name from environment variable: %s", name)
        config["name"] = name
    prefix = environ.get(ENV_REPORT_PREFIX)
    if prefix:
        log.info("Using report prefix from environment variable: %s", prefix)
        config["report_prefix"] = prefix
    return config


@dataclass(frozen=True)
class AuditSettings:
    command: tuple[str, ...] = ("lighthouse",)
    chrome_flags: str = "--headless --no-sandbox --disable-cache"
    extra_args: tuple[str, ...] = ()
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class RunSettings:
    """Everything the orchestrator needs, passed in rather than looked up."""

    report_prefix: str = "report"
    max_filename_length: int = 120
    suffix_length: int = 6
    artifact_extension: str = ".html"
    metadata_filename: str = "info.txt"
    write_metadata: bool = True
    audit: AuditSettings = field(default_factory=AuditSettings)

    def __post_init__(self) -> None:
        body_budget(
            self.report_prefix,
            max_length=self.max_filename_length,
            suffix_length=self.suffix_length,
            extension=self.artifact_extension,
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RunSettings":
        audit_raw = config.get("audit", {})
        command = audit_raw.get("command", ["lighthouse"])
        if isinstance(command, str):
            command = command.split()
        timeout = audit_raw.get("timeout_seconds")
        return cls(
            report_prefix=str(config.get("report_prefix", "report")),
            max_filename_length=int(config.get("max_filename_length", 120)),
            suffix_length=int(config.get("suffix_length", 6)),
            artifact_extension=str(config.get("artifact_extension", ".html")),
            metadata_filename=str(config.get("metadata_filename", "info.txt")),
            write_metadata=bool(config.get("write_metadata", True)),
            audit=AuditSettings(
                command=tuple(command),
                chrome_flags=str(audit_raw.get("chrome_flags", "")),
                extra_args=tuple(audit_raw.get("extra_args", [])),
                timeout_seconds=float(timeout) if timeout is not None else None,
            ),
        )
