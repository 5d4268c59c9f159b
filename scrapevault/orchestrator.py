"""Batch orchestration: validate URLs, fan out acquisitions, dedup and store."""

from __future__ import annotations

from concurrent.futures import Future, wait
from typing import Any, Iterable

import structlog

from .engine.dedup import DedupGate
from .engine.fetcher import STATIC_FAILURE_TITLE
from .engine.router import AcquisitionRouter
from .engine.thread_pool import BATCH_POOL, BROWSER_POOL, ThreadPoolManager
from .errors import RequestValidationError, StorageError
from .models import BatchScrapeRequest, Record, ScrapeRequest, is_valid_target_url
from .scheduler import JobQueue

NO_URLS_MESSAGE = "No valid URLs provided"
NO_VALID_URLS_MESSAGE = "No valid URLs found in the request"


def filter_urls(urls: Iterable[Any]) -> list[str]:
    """Drop blank, non-string and malformed entries; strip the survivors."""

    return [url.strip() for url in urls if is_valid_target_url(url)]


class BatchOrchestrator:
    """Central coordinator for single and multi-URL scrapes."""

    def __init__(
        self,
        router: AcquisitionRouter,
        gate: DedupGate,
        thread_pool: ThreadPoolManager,
        job_queue: JobQueue | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.router = router
        self.gate = gate
        self.thread_pool = thread_pool
        self.job_queue = job_queue
        self.logger = logger or structlog.get_logger("scrapevault.orchestrator")

    # ------------------------------------------------------------------
    def scrape_one(self, request: ScrapeRequest) -> Record:
        """Acquire one URL and pass the result through the dedup gate."""

        record = self.router.acquire(request)
        return self.gate.save(record).record

    def expand(self, batch: BatchScrapeRequest) -> list[ScrapeRequest]:
        if not batch.urls:
            raise RequestValidationError(NO_URLS_MESSAGE)
        urls = filter_urls(batch.urls)
        if not urls:
            raise RequestValidationError(NO_VALID_URLS_MESSAGE)
        dropped = len(batch.urls) - len(urls)
        if dropped:
            self.logger.info("invalid_urls_dropped", dropped=dropped, kept=len(urls))
        return [batch.for_url(url) for url in urls]

    def scrape_many(self, batch: BatchScrapeRequest) -> list[Record]:
        """Scrape every valid URL concurrently; results follow input order.

        Every task runs to completion. A storage failure in any task is
        raised once all siblings have finished.
        """

        requests = self.expand(batch)
        pool_name = BROWSER_POOL if batch.use_dynamic_rendering else BATCH_POOL
        executor = self.thread_pool.get(pool_name)
        futures: list[Future[Record]] = [
            executor.submit(self._isolated, request) for request in requests
        ]
        wait(futures)

        results: list[Record] = []
        storage_error: StorageError | None = None
        for future in futures:
            exc = future.exception()
            if exc is not None:
                storage_error = storage_error or exc
                continue
            results.append(future.result())
        if storage_error is not None:
            raise storage_error

        self.logger.info(
            "batch_done",
            total=len(results),
            degraded=sum(1 for record in results if record.is_degraded),
            pool=pool_name,
        )
        return results

    def enqueue_one(self, request: ScrapeRequest) -> str:
        return self._require_queue().enqueue(self.scrape_one, request)

    def enqueue_many(self, batch: BatchScrapeRequest) -> list[str]:
        queue = self._require_queue()
        return [queue.enqueue(self.scrape_one, request) for request in self.expand(batch)]

    # ------------------------------------------------------------------
    def _isolated(self, request: ScrapeRequest) -> Record:
        try:
            return self.scrape_one(request)
        except StorageError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.logger.error("batch_task_crashed", url=request.url, error=str(exc))
            return Record.degraded(
                request.url,
                STATIC_FAILURE_TITLE,
                f"Failed to scrape URL: {exc}",
                is_dynamic=request.use_dynamic_rendering,
                error=str(exc),
                transient=True,
            )

    def _require_queue(self) -> JobQueue:
        if self.job_queue is None:
            raise RuntimeError("Background submission requires a job queue")
        return self.job_queue


__all__ = ["BatchOrchestrator", "NO_URLS_MESSAGE", "NO_VALID_URLS_MESSAGE", "filter_urls"]
