"""Title, meta-tag and selector extraction from fetched HTML or JSON bodies."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from html import unescape
from typing import Any, Mapping

import structlog
from selectolax.lexbor import LexborHTMLParser

from ..models import DEFAULT_CONTENT_TYPE

CUSTOM_SELECTORS_KEY = "customSelectors"
JSON_TITLE_KEYS = ("title", "name", "heading")

_TITLE_RE = re.compile(r"<title[^>]*>\s*(.+?)\s*</title>", re.IGNORECASE | re.DOTALL)
_H1_RE = re.compile(r"<h1[^>]*>\s*(.+?)\s*</h1>", re.IGNORECASE | re.DOTALL)
_META_RE = re.compile(
    r"""<meta\s+(?:name|property)=["']([^"']+)["']\s+content=["']([^"']+)["']""",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


@dataclass
class Extraction:
    """Fields harvested from one response body."""

    title: str
    metadata: dict[str, Any] = field(default_factory=dict)


def media_type(content_type: str | None) -> str:
    """Strip parameters (``; charset=...``) from a Content-Type header."""

    if not content_type:
        return DEFAULT_CONTENT_TYPE
    bare = content_type.split(";", 1)[0].strip().lower()
    return bare or DEFAULT_CONTENT_TYPE


def split_selector(selector: str) -> tuple[str, str]:
    """Split ``css::mode`` into its CSS part and capture mode (text/html/attr:x)."""

    if "::" in selector:
        css, mode = selector.split("::", 1)
        return css.strip(), mode.strip().lower()
    return selector.strip(), "text"


def merge_captures(metadata: Mapping[str, Any], captures: Mapping[str, str]) -> dict[str, Any]:
    merged = dict(metadata)
    if captures:
        merged[CUSTOM_SELECTORS_KEY] = dict(captures)
    return merged


class Extractor:
    """Turn raw bodies into a title and metadata map according to content type."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("scrapevault.extractor")

    def extract(self, body: str, content_type: str, url: str) -> Extraction:
        if "html" in content_type:
            return Extraction(title=self.extract_title(body), metadata=self.extract_meta(body))
        if "json" in content_type:
            return self.extract_json(body, url)
        return Extraction(title=f"{content_type} from {url}")

    # ------------------------------------------------------------------
    def extract_title(self, html: str) -> str:
        if not html:
            return ""
        for pattern in (_TITLE_RE, _H1_RE):
            match = pattern.search(html)
            if match:
                text = _TAG_RE.sub("", match.group(1))
                return _WS_RE.sub(" ", unescape(text)).strip()
        return ""

    def extract_meta(self, html: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if not html:
            return metadata
        for match in _META_RE.finditer(html):
            name = match.group(1).strip()
            value = match.group(2).strip()
            if name:
                metadata[name] = unescape(value)
        return metadata

    def extract_json(self, payload: str, url: str) -> Extraction:
        try:
            document = json.loads(payload)
        except (TypeError, ValueError) as exc:
            self.logger.info("json_parse_failed", url=url, error=str(exc))
            return Extraction(title=f"Invalid JSON: {url}")
        if not isinstance(document, dict):
            return Extraction(title=f"JSON Data: {url}")
        title = ""
        for key in JSON_TITLE_KEYS:
            value = document.get(key)
            if isinstance(value, str) and value.strip():
                title = value.strip()
                break
        return Extraction(title=title or f"JSON Data: {url}", metadata=document)

    def select_fields(self, html: str, selectors: Mapping[str, str], url: str = "") -> dict[str, str]:
        """Capture named CSS selectors from static HTML.

        A selector that matches nothing or cannot be evaluated is omitted
        from the result; it never fails the whole extraction.
        """

        captures: dict[str, str] = {}
        if not selectors or not html:
            return captures
        tree = LexborHTMLParser(html)
        for name, selector in selectors.items():
            css, mode = split_selector(selector)
            try:
                node = tree.css_first(css) if css else None
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "selector_failed", url=url, field=name, selector=selector, error=str(exc)
                )
                continue
            if node is None:
                self.logger.info("selector_missing", url=url, field=name, selector=selector)
                continue
            if mode == "html":
                value = node.html
            elif mode.startswith("attr:"):
                value = node.attributes.get(mode.split(":", 1)[1])
            else:
                value = node.text(separator=" ", strip=True)
            if value is None:
                self.logger.info("selector_missing", url=url, field=name, selector=selector)
                continue
            captures[name] = value
        return captures


__all__ = [
    "CUSTOM_SELECTORS_KEY",
    "Extraction",
    "Extractor",
    "media_type",
    "merge_captures",
    "split_selector",
]
