"""Headless Chromium acquisition for JavaScript-rendered pages."""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
from typing import Any, Callable, ContextManager, Iterator, Mapping

import structlog

from ..config import GlobalConfig
from ..models import Record, ScrapeRequest, utcnow
from .extractor import Extractor, media_type, merge_captures, split_selector

DYNAMIC_FAILURE_TITLE = "Error: Dynamic Scraping Failed"

_META_SCRIPT = """
() => Array.from(document.querySelectorAll('meta[name], meta[property]'))
    .map(el => [el.getAttribute('name') || el.getAttribute('property'), el.getAttribute('content')])
    .filter(pair => pair[0] && pair[1])
"""

SessionFactory = Callable[[GlobalConfig], ContextManager[Any]]


@contextmanager
def browser_session(global_config: GlobalConfig) -> Iterator[Any]:
    """Yield a fresh Playwright page; driver, browser, context and page are torn down on exit."""

    try:
        from playwright.sync_api import sync_playwright
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "Dynamic scraping requires installing the 'playwright' package."
        ) from exc

    # Callbacks unwind in reverse order and every one runs even if an earlier close raises.
    with ExitStack() as stack:
        playwright = sync_playwright().start()
        stack.callback(playwright.stop)
        browser = playwright.chromium.launch(headless=global_config.headless_mode)
        stack.callback(browser.close)
        width, height = global_config.viewport_size
        context = browser.new_context(
            user_agent=global_config.user_agent,
            viewport={"width": width, "height": height},
        )
        stack.callback(context.close)
        page = context.new_page()
        stack.callback(page.close)
        yield page


class DynamicRenderStrategy:
    """Render a page in a real browser, wait a fixed delay, then harvest the DOM."""

    def __init__(
        self,
        global_config: GlobalConfig,
        extractor: Extractor | None = None,
        logger: structlog.BoundLogger | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.global_config = global_config
        self.extractor = extractor or Extractor()
        self.logger = logger or structlog.get_logger("scrapevault.browser")
        self._session_factory = session_factory or browser_session

    def acquire(self, request: ScrapeRequest) -> Record:
        scraped_at = utcnow()
        try:
            with self._session_factory(self.global_config) as page:
                return self._render(page, request, scraped_at)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("dynamic_render_failed", url=request.url, error=str(exc))
            return Record.degraded(
                request.url,
                DYNAMIC_FAILURE_TITLE,
                f"Dynamic scraping error: {exc}",
                is_dynamic=True,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    def _render(self, page: Any, request: ScrapeRequest, scraped_at) -> Record:
        response = page.goto(request.url, timeout=self.global_config.navigation_timeout_ms)
        page.wait_for_timeout(request.render_wait_ms)

        # No response (e.g. same-document navigation) means the status is unknown.
        status_code = 0
        content_type = media_type(None)
        if response is not None:
            status_code = response.status
            content_type = media_type((response.headers or {}).get("content-type"))

        content = page.content()
        title = (page.title() or "").strip()
        metadata = self._harvest_meta(page, request.url)
        if request.selectors:
            metadata = merge_captures(metadata, self._select_fields(page, request.selectors, request.url))

        self.logger.info(
            "dynamic_render_done",
            url=request.url,
            status=status_code,
            wait_ms=request.render_wait_ms,
        )
        return Record(
            url=request.url,
            title=title,
            content=content,
            content_type=content_type,
            metadata=metadata,
            scraped_at=scraped_at,
            is_dynamic=True,
            status_code=status_code,
        )

    def _harvest_meta(self, page: Any, url: str) -> dict[str, Any]:
        try:
            pairs = page.evaluate(_META_SCRIPT) or []
        except Exception as exc:  # noqa: BLE001
            self.logger.info("meta_harvest_failed", url=url, error=str(exc))
            return {}
        return {str(name): value for name, value in pairs if name}

    def _select_fields(self, page: Any, selectors: Mapping[str, str], url: str) -> dict[str, str]:
        captures: dict[str, str] = {}
        for name, selector in selectors.items():
            css, mode = split_selector(selector)
            try:
                handle = page.query_selector(css) if css else None
                if handle is None:
                    self.logger.info("selector_missing", url=url, field=name, selector=selector)
                    continue
                if mode == "html":
                    value = handle.inner_html()
                elif mode.startswith("attr:"):
                    value = handle.get_attribute(mode.split(":", 1)[1])
                else:
                    value = handle.text_content()
                    value = value.strip() if value is not None else None
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "selector_failed", url=url, field=name, selector=selector, error=str(exc)
                )
                continue
            if value is None:
                self.logger.info("selector_missing", url=url, field=name, selector=selector)
                continue
            captures[name] = value
        return captures


__all__ = ["DYNAMIC_FAILURE_TITLE", "DynamicRenderStrategy", "browser_session"]
