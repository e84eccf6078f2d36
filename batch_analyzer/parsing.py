# batch_analyzer/parsing.py
"""
Turns one report artifact into category scores.

parse_report() returns None when the artifact has no usable payload, and a
ParsedReport with score 0 when the payload is there but has no categories.
"""
from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote_to_bytes

from batch_analyzer.cache import FileCache, artifact_key
from batch_analyzer.errors import DecodeFailure
from batch_analyzer.extract import DEFAULT_EXTRACTOR, PayloadExtractor
from batch_analyzer.models import ParsedReport

log = logging.getLogger(__name__)

# Payload category id -> metric name.
CATEGORY_KEYS: dict[str, str] = {
    "performance": "performance",
    "accessibility": "accessibility",
    "best-practices": "best_practices",
    "seo": "seo",
}

URL_FIELDS = ("finalDisplayedUrl", "finalUrl", "requestedUrl")

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def round_half_up(value: float) -> int:
    """Rounds .5 upwards, the way the audit engine's own UI rounds scores."""
    return int(math.floor(value + 0.5))


def mean_score(values: list[int]) -> int:
    """Rounded mean, 0 for an empty list."""
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def _strict_unquote(raw: str) -> str:
    if _BAD_ESCAPE_RE.search(raw):
        raise DecodeFailure(raw)
    try:
        return unquote_to_bytes(raw).decode("utf-8")
    except UnicodeError as e:
        # lone surrogates fail to encode, bad byte sequences fail to decode
        raise DecodeFailure(raw) from e


def decode_display_url(raw: str) -> tuple[str, bool]:
    """
    Percent-decodes a URL such as an Arabic slug.

    Returns (url, decoded). On malformed escapes or invalid UTF-8 the raw
    value comes back unchanged with decoded=False.
    """
    try:
        return _strict_unquote(raw), True
    except DecodeFailure as e:
        log.warning("%s", e)
        return raw, False


def _category_scores(categories: Any) -> dict[str, int]:
    metrics: dict[str, int] = {}
    if not isinstance(categories, dict):
        return metrics
    for key, metric in CATEGORY_KEYS.items():
        category = categories.get(key)
        if not isinstance(category, dict):
            continue
        score = category.get("score")
        # bool is an int subclass but never a real score
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        metrics[metric] = round_half_up(score * 100)
    return metrics


def report_from_payload(payload: dict[str, Any]) -> ParsedReport:
    url: str | None = None
    decoded = True
    for field_name in URL_FIELDS:
        raw = payload.get(field_name)
        if isinstance(raw, str) and raw:
            url, decoded = decode_display_url(raw)
            break

    metrics = _category_scores(payload.get("categories"))
    return ParsedReport(
        url=url,
        metrics=metrics,
        score=mean_score(list(metrics.values())),
        url_decoded=decoded,
    )


def parse_report(
    data: bytes | str, extractor: PayloadExtractor | None = None
) -> ParsedReport | None:
    """Parses artifact contents. Never raises for bad or foreign content."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    payload = (extractor or DEFAULT_EXTRACTOR).extract(text)
    if payload is None:
        return None
    return report_from_payload(payload)


class ReportParser:
    """Reads artifacts from disk, optionally through the parsed-report cache."""

    def __init__(
        self,
        extractor: PayloadExtractor | None = None,
        cache: FileCache | None = None,
    ) -> None:
        self.extractor = extractor or DEFAULT_EXTRACTOR
        self.cache = cache

    def parse_bytes(self, data: bytes | str) -> ParsedReport | None:
        return parse_report(data, self.extractor)

    def parse_file(self, path: Path) -> ParsedReport | None:
        key = artifact_key(path) if self.cache is not None else None
        if key is not None and self.cache is not None:
            hit, cached = self.cache.get_parsed(key)
            if hit:
                log.debug("Cache hit for %s", path)
                return cached

        try:
            data = path.read_bytes()
        except OSError as e:
            log.warning("Could not read report %s: %s", path, e)
            return None

        report = self.parse_bytes(data)
        if report is None:
            log.warning("No audit data in %s", path.name)
        if key is not None and self.cache is not None:
            self.cache.set_parsed(key, report)
        return report
