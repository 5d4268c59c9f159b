"""Plain HTTP acquisition without JavaScript rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

import httpx
import structlog

from ..config import GlobalConfig
from ..models import Record, ScrapeRequest, utcnow
from .extractor import Extractor, media_type, merge_captures

STATIC_FAILURE_TITLE = "Error: Scraping Failed"


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    text: str
    content_type: str
    headers: Dict[str, str] = field(default_factory=dict, repr=False)


class StaticFetchStrategy:
    """Single GET with a spoofed user agent, handed to the extractor."""

    def __init__(
        self,
        global_config: GlobalConfig,
        extractor: Extractor | None = None,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.global_config = global_config
        self.extractor = extractor or Extractor()
        self.logger = logger or structlog.get_logger("scrapevault.fetcher")
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=global_config.http_timeout,
            headers={"User-Agent": global_config.user_agent},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str) -> FetchResponse:
        response = self._client.get(url)
        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            content_type=media_type(response.headers.get("content-type")),
            headers=dict(response.headers),
        )

    def acquire(self, request: ScrapeRequest) -> Record:
        scraped_at = utcnow()
        try:
            response = self.fetch(request.url)
        except httpx.HTTPError as exc:
            self.logger.warning("static_fetch_failed", url=request.url, error=str(exc))
            return Record.degraded(
                request.url,
                STATIC_FAILURE_TITLE,
                f"Failed to scrape URL: {exc}",
                is_dynamic=False,
                error=str(exc),
            )

        extraction = self.extractor.extract(response.text, response.content_type, request.url)
        metadata = extraction.metadata
        if request.selectors and "html" in response.content_type:
            captures = self.extractor.select_fields(response.text, request.selectors, request.url)
            metadata = merge_captures(metadata, captures)

        self.logger.info(
            "static_fetch_done",
            url=request.url,
            status=response.status_code,
            content_type=response.content_type,
        )
        return Record(
            url=request.url,
            title=extraction.title,
            content=response.text,
            content_type=response.content_type,
            metadata=metadata,
            scraped_at=scraped_at,
            is_dynamic=False,
            status_code=response.status_code,
        )


__all__ = ["FetchResponse", "STATIC_FAILURE_TITLE", "StaticFetchStrategy"]
