"""APScheduler-backed queue for fire-and-forget scrape jobs."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Condition
from typing import Any, Callable
from uuid import uuid4

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger


class JobQueue:
    """Run submitted callables once, as soon as possible, on a background scheduler."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={"misfire_grace_time": None, "coalesce": False}
        )
        self.logger = logger or structlog.get_logger("scrapevault.scheduler")
        self.started = False
        self._pending: set[str] = set()
        self._cond = Condition()
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("job_queue_started")

    def shutdown(self, wait: bool = False) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("job_queue_stopped")

    def enqueue(self, func: Callable[..., Any], *args: Any) -> str:
        """Register a one-shot job and return its id."""

        self.start()
        job_id = uuid4().hex
        with self._cond:
            self._pending.add(job_id)
        self.scheduler.add_job(
            self._run,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc)),
            id=job_id,
            args=[job_id, func, *args],
        )
        self.logger.info("job_enqueued", job_id=job_id, func=getattr(func, "__name__", repr(func)))
        return job_id

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": job.next_run_time,
                    "trigger": str(job.trigger),
                }
            )
        return jobs

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._pending)

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every enqueued job has finished; ``False`` on timeout."""

        with self._cond:
            return self._cond.wait_for(lambda: not self._pending, timeout=timeout)

    # ------------------------------------------------------------------
    def _run(self, job_id: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        finally:
            self._finish(job_id)

    def _finish(self, job_id: str) -> None:
        with self._cond:
            self._pending.discard(job_id)
            self._cond.notify_all()

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            self.logger.warning("job_missed", job_id=event.job_id)
            self._finish(event.job_id)
            return
        self.logger.error(
            "job_failed",
            job_id=event.job_id,
            error=str(event.exception),
            traceback=event.traceback,
        )


__all__ = ["JobQueue"]
