# batch_analyzer/errors.py
"""
Error taxonomy.

Fatal: InvalidInput, DirectoryError. They abort the operation that raised them.
Recorded: SubprocessFailure. The orchestrator turns it into an AuditFailure and
moves on to the next URL.
Degrading: ArtifactParseFailure, DecodeFailure. Raised only inside the parsing
helpers and caught per artifact, so a scan never fails because of one file.
"""
from __future__ import annotations

from pathlib import Path


class BatchAnalyzerError(Exception):
    """Base class for every error raised by batch_analyzer."""


class InvalidInput(BatchAnalyzerError, ValueError):
    """Empty run name, empty URL list, or a path outside the reports root."""


class DirectoryError(BatchAnalyzerError):
    """A run directory could not be created or adopted."""

    def __init__(self, directory: Path | str, reason: str) -> None:
        self.directory = Path(directory)
        self.reason = reason
        super().__init__(f"Cannot use run directory {self.directory}: {reason}")


class SubprocessFailure(BatchAnalyzerError):
    """The audit subprocess failed for a single URL."""

    def __init__(self, url: str, exit_code: int | None, stderr: str = "") -> None:
        self.url = url
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Audit failed for {url} (exit code {exit_code})")


class ArtifactParseFailure(BatchAnalyzerError):
    """The embedded audit payload is missing or malformed."""


class DecodeFailure(BatchAnalyzerError):
    """A URL could not be percent-decoded."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Failed to decode URL: {raw}")
