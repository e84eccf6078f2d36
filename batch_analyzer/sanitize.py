# batch_analyzer/sanitize.py
"""
URL to report filename conversion.

    "https://www.google.com/search?q=rust"
        -> "report_www_google_com_search_q_rust__abc123.html"

The only non-deterministic part of a name is the suffix, and callers may
inject it.
"""
from __future__ import annotations

import logging
import re
import secrets
import string
from pathlib import Path
from typing import Collection

from batch_analyzer.errors import InvalidInput

log = logging.getLogger(__name__)

DEFAULT_PREFIX = "report"
DEFAULT_MAX_LENGTH = 120
DEFAULT_SUFFIX_LENGTH = 6
DEFAULT_EXTENSION = ".html"

SUFFIX_ALPHABET = string.ascii_letters + string.digits

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_UNSAFE_RUN_RE = re.compile(r"[^A-Za-z0-9-]+")

_MAX_SUFFIX_ATTEMPTS = 100


def random_suffix(length: int = DEFAULT_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def _clean(text: str) -> str:
    return _UNSAFE_RUN_RE.sub("_", text).strip("_")


def body_budget(
    prefix: str,
    *,
    max_length: int = DEFAULT_MAX_LENGTH,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
    extension: str = DEFAULT_EXTENSION,
) -> int:
    """
    Characters left for the URL body once the prefix, "__<suffix>" and the
    extension are placed.

    Raises:
        InvalidInput: nothing is left, so every name would break max_length.
    """
    clean_prefix = _clean(prefix) or DEFAULT_PREFIX
    budget = max_length - (len(clean_prefix) + 3 + suffix_length + len(extension))
    if budget < 1:
        raise InvalidInput(
            f"Report prefix {clean_prefix!r} leaves no room for the URL within "
            f"{max_length} characters"
        )
    return budget


def url_to_filename(
    url: str,
    prefix: str = DEFAULT_PREFIX,
    *,
    suffix: str | None = None,
    max_length: int = DEFAULT_MAX_LENGTH,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
    extension: str = DEFAULT_EXTENSION,
) -> str:
    """
    Converts a URL into a filesystem-safe report filename.

    Characters outside [A-Za-z0-9-] become "_", with runs collapsed to one.
    Only the URL body is truncated; the prefix, the "__<suffix>" part and the
    extension are always kept whole.
    """
    clean_prefix = _clean(prefix) or DEFAULT_PREFIX
    clean_suffix = _clean(suffix) if suffix is not None else ""
    if not clean_suffix:
        clean_suffix = random_suffix(suffix_length)

    body = _clean(_SCHEME_RE.sub("", url.strip()))

    budget = body_budget(
        clean_prefix,
        max_length=max_length,
        suffix_length=len(clean_suffix),
        extension=extension,
    )
    if len(body) > budget:
        body = body[:budget].rstrip("_")

    return f"{clean_prefix}_{body}__{clean_suffix}{extension}"


def unique_report_path(
    run_dir: Path,
    url: str,
    prefix: str = DEFAULT_PREFIX,
    *,
    taken: Collection[str] = (),
    max_length: int = DEFAULT_MAX_LENGTH,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
    extension: str = DEFAULT_EXTENSION,
) -> Path:
    """
    Picks a filename inside `run_dir` that is neither in `taken` nor on disk.
    """
    for _ in range(_MAX_SUFFIX_ATTEMPTS):
        name = url_to_filename(
            url,
            prefix,
            max_length=max_length,
            suffix_length=suffix_length,
            extension=extension,
        )
        candidate = run_dir / name
        if name not in taken and not candidate.exists():
            return candidate
        log.debug("Filename collision for %s, drawing a new suffix", name)
    raise RuntimeError(
        f"Could not find a free report filename for {url} in {run_dir}"
    )
