# batch_analyzer/extract.py
"""
Locates the machine-readable audit payload inside a report artifact.

Lighthouse HTML reports embed their result as

    <script>window.__LIGHTHOUSE_JSON__ = {...};</script>

The artifact format belongs to the audit engine, so extraction sits behind the
PayloadExtractor protocol and degrades to None instead of raising.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from bs4 import BeautifulSoup

from batch_analyzer.errors import ArtifactParseFailure

log = logging.getLogger(__name__)

LIGHTHOUSE_MARKER_RE = re.compile(r"window\.__LIGHTHOUSE_JSON__\s*=\s*")


class PayloadExtractor(Protocol):
    def extract(self, text: str) -> dict[str, Any] | None:
        """Returns the embedded payload, or None if there is none."""
        ...


def _decode_object_at(text: str, start: int) -> dict[str, Any]:
    try:
        payload, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise ArtifactParseFailure(f"Malformed payload: {e}") from e
    if not isinstance(payload, dict):
        raise ArtifactParseFailure(
            f"Payload is a {type(payload).__name__}, expected an object"
        )
    return payload


class LighthouseJsonExtractor:
    """Pulls `window.__LIGHTHOUSE_JSON__` out of a Lighthouse HTML report."""

    marker = LIGHTHOUSE_MARKER_RE

    def _find_payload(self, text: str) -> dict[str, Any]:
        soup = BeautifulSoup(text, "html.parser")
        for script in soup.find_all("script"):
            body = script.string or script.get_text()
            match = self.marker.search(body)
            if match:
                return _decode_object_at(body, match.end())

        # Not inside a <script>; accept a bare assignment anywhere in the file.
        match = self.marker.search(text)
        if match:
            return _decode_object_at(text, match.end())
        raise ArtifactParseFailure("No embedded audit payload found")

    def extract(self, text: str) -> dict[str, Any] | None:
        try:
            return self._find_payload(text)
        except ArtifactParseFailure as e:
            log.warning("%s", e)
            return None


DEFAULT_EXTRACTOR: PayloadExtractor = LighthouseJsonExtractor()
