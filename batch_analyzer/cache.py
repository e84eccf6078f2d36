# batch_analyzer/cache.py
"""
File-backed cache of parsed report artifacts.

- Storage: diskcache.Cache (robust, fast, cross-platform).
- Location: default is a visible folder in CWD; optionally an OS-specific app cache dir via platformdirs.
- Scope: the scores extracted from one artifact. Keys embed the artifact's
  size and mtime, so a rewritten file is never served stale.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Optional

import diskcache
from platformdirs import user_cache_dir as _user_cache_dir

from batch_analyzer.models import ParsedReport

log = logging.getLogger(__name__)

# Stored for artifacts without a payload, so they are not re-read either.
_NO_PAYLOAD = {"payload": None}


@dataclasses.dataclass
class CacheConfig:
    enabled: bool = True
    # Either a concrete directory path, or special marker "os-default"
    # for an OS-specific global cache location.
    directory: str = ".batch_analyzer_cache"
    expire_seconds: int = 7 * 24 * 3600

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> "CacheConfig":
        return cls(
            enabled=bool(raw.get("enabled", True)),
            directory=str(raw.get("directory", ".batch_analyzer_cache")),
            expire_seconds=int(raw.get("expire_seconds", 7 * 24 * 3600)),
        )


def artifact_key(path: Path) -> str | None:
    """Cache key for an artifact, or None if it cannot be stat'ed."""
    try:
        st = path.stat()
    except OSError:
        return None
    return f"{path.resolve()}:{st.st_size}:{st.st_mtime_ns}"


class FileCache:
    """
    Thin wrapper over diskcache with a tiny, explicit key/value contract.
    Keys: see artifact_key().
    Values: {"payload": None} or {"payload": {url, metrics, score, url_decoded}}.
    """

    def __init__(self, cfg: CacheConfig, app_name: str = "batch_analyzer"):
        self.cfg = cfg
        self.app_name = app_name
        self._cache: diskcache.Cache | None = None

        if not cfg.enabled:
            log.info("Parsed-report cache disabled")
            return
        self.create_cache_object()

    def create_cache_object(self) -> None:
        if self._cache is not None and self._cache.directory:
            return
        directory = self.cfg.directory
        if directory == "os-default":
            directory = _user_cache_dir(self.app_name, appauthor=False)

        log.debug("Cache at %s", directory)
        self._cache = diskcache.Cache(directory)

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    # ---- Introspection helpers ---------------------------------------------

    @property
    def directory(self) -> Optional[str]:
        if self._cache is None or not self._cache.directory:
            return None
        return str(self._cache.directory)

    def stats(self) -> dict[str, int | str]:
        """
        Returns:
            - artifacts: cached artifacts, parsed or not
            - parsed: artifacts that carried an audit payload
            - bytes: on-disk size as reported by diskcache
            - directory: absolute directory path
        """
        if self._cache is None:
            return {"artifacts": 0, "parsed": 0, "bytes": 0, "directory": ""}
        artifacts = parsed = 0
        for key in self._cache.iterkeys():
            entry = self._cache.get(key)
            if entry is None:
                continue  # expired between iteration and read
            artifacts += 1
            if entry.get("payload") is not None:
                parsed += 1
        return {
            "artifacts": artifacts,
            "parsed": parsed,
            "bytes": self._cache.volume(),
            "directory": os.path.abspath(self.directory or ""),
        }

    def clear_all(self) -> int:
        """Drops every cached artifact and returns how many were removed."""
        if self._cache is None:
            log.warning("Cache disabled")
            return 0
        removed = self._cache.clear()
        log.info("Removed %d cached artifacts from %s", removed, self.directory)
        return removed

    # ---- Public API ---------------------------------------------------------

    def get(self, key: str) -> Optional[dict[str, Any]]:
        if self._cache is None:
            return None
        return self._cache.get(key)  # respects internal expirations

    def get_parsed(self, key: str) -> tuple[bool, ParsedReport | None]:
        """Returns (hit, report). A hit may carry None for payload-less artifacts."""
        entry = self.get(key)
        if entry is None:
            return False, None
        payload = entry.get("payload")
        if payload is None:
            return True, None
        return True, ParsedReport(
            url=payload.get("url"),
            metrics=dict(payload.get("metrics", {})),
            score=int(payload.get("score", 0)),
            url_decoded=bool(payload.get("url_decoded", True)),
        )

    def set_parsed(self, key: str, report: ParsedReport | None) -> None:
        if self._cache is None:
            return
        value = _NO_PAYLOAD
        if report is not None:
            value = {"payload": dataclasses.asdict(report)}
        self._cache.set(key, value, expire=self.cfg.expire_seconds)
