"""Request and record types shared across the acquisition pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import urlparse
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

#: Status code stamped on records produced in place of an internal failure.
ERROR_STATUS = 500
DEFAULT_CONTENT_TYPE = "text/html"
DEFAULT_WAIT_MS = 5000
PREVIEW_LENGTH = 200

# Wire names are matched case-insensitively, with underscores ignored.
_WIRE_FIELDS = {
    "url": "url",
    "urls": "urls",
    "usedynamicscraping": "use_dynamic_rendering",
    "usedynamicrendering": "use_dynamic_rendering",
    "waittimems": "render_wait_ms",
    "renderwaitms": "render_wait_ms",
    "selectors": "selectors",
}


def _normalise_keys(data: Any) -> Any:
    if not isinstance(data, Mapping):
        return data
    normalised: dict[str, Any] = {}
    for key, value in data.items():
        folded = str(key).lower().replace("_", "")
        normalised[_WIRE_FIELDS.get(folded, str(key))] = value
    return normalised


def has_batch_urls(payload: Mapping[str, Any]) -> bool:
    """Return ``True`` when the payload carries a ``urls`` key in any casing."""

    return any(str(key).lower() == "urls" for key in payload)


def is_valid_target_url(value: Any) -> bool:
    """Absolute http(s) URL with a network location."""

    if not isinstance(value, str) or not value.strip():
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class _ScrapeOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    use_dynamic_rendering: bool = False
    render_wait_ms: int = Field(default=DEFAULT_WAIT_MS, ge=0)
    selectors: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_wire_names(cls, data: Any) -> Any:
        return _normalise_keys(data)

    @field_validator("selectors", mode="before")
    @classmethod
    def _coerce_selectors(cls, value: Any) -> Any:
        if value is None:
            return {}
        return value

    @field_validator("use_dynamic_rendering", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        if value is None:
            return False
        return value

    @field_validator("render_wait_ms", mode="before")
    @classmethod
    def _coerce_wait(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_WAIT_MS
        return value


class ScrapeRequest(_ScrapeOptions):
    """One acquisition target with its scraping options."""

    url: str = Field(default=None, validate_default=True)

    @field_validator("url", mode="before")
    @classmethod
    def _validate_url(cls, value: Any) -> str:
        if not is_valid_target_url(value):
            raise ValueError("Invalid URL format")
        return value.strip()


class BatchScrapeRequest(_ScrapeOptions):
    """Candidate URLs sharing one set of scraping options.

    ``urls`` is kept raw; blank or malformed entries are filtered by the
    orchestrator rather than rejected here.
    """

    urls: list[Any] = Field(default_factory=list)

    @field_validator("urls", mode="before")
    @classmethod
    def _coerce_urls(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    def for_url(self, url: str) -> ScrapeRequest:
        return ScrapeRequest(
            url=url,
            use_dynamic_rendering=self.use_dynamic_rendering,
            render_wait_ms=self.render_wait_ms,
            selectors=dict(self.selectors),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    if not text or len(text) <= length:
        return text
    return text[:length] + "..."


@dataclass(frozen=True, slots=True)
class Record:
    """A scraped page in the shape it is persisted.

    ``error`` is only set on degraded records and is never written to storage.
    ``transient`` marks degraded records that bypass the store entirely.
    """

    url: str
    title: str = ""
    content: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    metadata: dict[str, Any] = field(default_factory=dict)
    scraped_at: datetime = field(default_factory=utcnow)
    content_hash: str = ""
    is_dynamic: bool = False
    status_code: int = 200
    id: str = field(default_factory=lambda: str(uuid4()))
    error: str | None = field(default=None, compare=False)
    transient: bool = field(default=False, compare=False)

    @classmethod
    def degraded(
        cls,
        url: str,
        title: str,
        content: str,
        *,
        is_dynamic: bool,
        error: str,
        transient: bool = False,
    ) -> "Record":
        return cls(
            url=url,
            title=title,
            content=content,
            is_dynamic=is_dynamic,
            status_code=ERROR_STATUS,
            error=error,
            transient=transient,
        )

    @property
    def is_degraded(self) -> bool:
        return self.error is not None

    def with_hash(self, content_hash: str) -> "Record":
        return replace(self, content_hash=content_hash)

    def to_view(self, preview_length: int = PREVIEW_LENGTH) -> dict[str, Any]:
        """Response shape handed back to API and CLI callers."""

        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "contentPreview": preview(self.content, preview_length),
            "content": self.content,
            "metadata": dict(self.metadata) if self.metadata else {},
            "scrapedDate": self.scraped_at.isoformat(),
            "contentType": self.content_type,
            "isDynamicContent": self.is_dynamic,
            "statusCode": self.status_code,
        }


@dataclass(slots=True)
class DedupOutcome:
    """Result of passing a candidate through the dedup gate."""

    record: Record
    created: bool


__all__ = [
    "BatchScrapeRequest",
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_WAIT_MS",
    "DedupOutcome",
    "ERROR_STATUS",
    "PREVIEW_LENGTH",
    "Record",
    "ScrapeRequest",
    "has_batch_urls",
    "is_valid_target_url",
    "preview",
    "utcnow",
]
