"""Request/response facade over the scrape pipeline and record store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

import structlog
from pydantic import ValidationError

from .config import ConfigRepository, GlobalConfig
from .engine.browser import DynamicRenderStrategy
from .engine.dedup import DedupGate
from .engine.exporter import get_exporter
from .engine.extractor import Extractor
from .engine.fetcher import StaticFetchStrategy
from .engine.router import AcquisitionRouter
from .engine.thread_pool import BATCH_POOL, BROWSER_POOL, ThreadPoolManager
from .errors import RequestValidationError
from .infra.storage import RecordStore, SQLiteManager
from .models import BatchScrapeRequest, Record, ScrapeRequest, has_batch_urls
from .orchestrator import BatchOrchestrator
from .scheduler import JobQueue

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
EXPORT_FILENAME_FORMAT = "scraped-data-%Y-%m-%d-%H%M%S"


@dataclass(slots=True)
class ExportResult:
    filename: str
    media_type: str
    body: str


def _validation_message(exc: ValidationError) -> str:
    for error in exc.errors():
        cause = (error.get("ctx") or {}).get("error")
        if isinstance(cause, ValueError):
            return str(cause)
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def _parse_date(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise RequestValidationError(f"Invalid date for {field}: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _lookup(payload: Mapping[str, Any], name: str, default: Any = None) -> Any:
    folded = name.lower()
    for key, value in payload.items():
        if str(key).lower().replace("_", "") == folded:
            return value
    return default


_WAIT_KEYS = ("waittimems", "renderwaitms")


def _with_default_wait(payload: Mapping[str, Any], wait_ms: int) -> Mapping[str, Any]:
    if any(_lookup(payload, key) is not None for key in _WAIT_KEYS):
        return payload
    data = {
        key: value
        for key, value in payload.items()
        if str(key).lower().replace("_", "") not in _WAIT_KEYS
    }
    data["waitTimeMs"] = wait_ms
    return data


class ScrapeService:
    """Accepts wire-shaped payloads and returns wire-shaped results."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        store: RecordStore,
        global_config: GlobalConfig | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.global_config = global_config or GlobalConfig()
        self.logger = logger or structlog.get_logger("scrapevault.service")

    # ------------------------------------------------------------------
    def parse(self, payload: Any) -> ScrapeRequest | BatchScrapeRequest:
        if not isinstance(payload, Mapping):
            raise RequestValidationError("Request body must be a JSON object")
        model = BatchScrapeRequest if has_batch_urls(payload) else ScrapeRequest
        try:
            request = model.model_validate(
                _with_default_wait(payload, self.global_config.default_wait_ms)
            )
        except ValidationError as exc:
            raise RequestValidationError(_validation_message(exc)) from exc
        return request

    def scrape(self, payload: Any) -> dict[str, Any] | list[dict[str, Any]]:
        request = self.parse(payload)
        if isinstance(request, ScrapeRequest):
            return self._view(self.orchestrator.scrape_one(request))
        records = self.orchestrator.scrape_many(request)
        if len(records) == 1:
            return self._view(records[0])
        return [self._view(record) for record in records]

    def enqueue(self, payload: Any) -> dict[str, Any]:
        request = self.parse(payload)
        if isinstance(request, ScrapeRequest):
            return {"jobId": self.orchestrator.enqueue_one(request)}
        return {"jobIds": self.orchestrator.enqueue_many(request)}

    # ------------------------------------------------------------------
    def list_records(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        url_filter: str | None = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> dict[str, Any]:
        page = page if page >= 1 else 1
        if page_size < 1:
            page_size = DEFAULT_PAGE_SIZE
        page_size = min(page_size, MAX_PAGE_SIZE)
        items, total = self.store.query(
            page=page,
            page_size=page_size,
            url_filter=url_filter or None,
            start=_parse_date(start_date, "startDate"),
            end=_parse_date(end_date, "endDate"),
        )
        return {
            "items": [self._view(record) for record in items],
            "totalCount": total,
            "page": page,
            "pageSize": page_size,
        }

    def get_record(self, record_id: str) -> dict[str, Any] | None:
        record = self.store.find_by_id(record_id)
        return self._view(record) if record is not None else None

    def delete_record(self, record_id: str) -> bool:
        deleted = self.store.delete(record_id)
        self.logger.info("record_deleted", id=record_id, deleted=deleted)
        return deleted

    def export(self, payload: Mapping[str, Any]) -> ExportResult:
        exporter = get_exporter(
            _lookup(payload, "format"), preview_length=self.global_config.preview_length
        )
        records, total = self.store.query(
            page=1,
            page_size=self.global_config.export_limit,
            url_filter=_lookup(payload, "urlfilter") or None,
            start=_parse_date(_lookup(payload, "startdate"), "startDate"),
            end=_parse_date(_lookup(payload, "enddate"), "endDate"),
        )
        filename = datetime.now(timezone.utc).strftime(EXPORT_FILENAME_FORMAT)
        self.logger.info("export_rendered", format=exporter.name, exported=len(records), total=total)
        return ExportResult(
            filename=f"{filename}.{exporter.extension}",
            media_type=exporter.media_type,
            body=exporter.render(records),
        )

    def _view(self, record: Record) -> dict[str, Any]:
        return record.to_view(self.global_config.preview_length)


@dataclass(slots=True)
class ServiceRuntime:
    """Every long-lived collaborator behind one service; closed together."""

    service: ScrapeService
    job_queue: JobQueue
    thread_pool: ThreadPoolManager
    router: AcquisitionRouter
    sqlite: SQLiteManager

    def close(self, drain_timeout: float | None = None) -> bool:
        drained = True
        if self.job_queue.pending:
            drained = self.job_queue.drain(drain_timeout)
        self.job_queue.shutdown(wait=False)
        self.thread_pool.shutdown(wait=True)
        self.router.close()
        self.sqlite.close_all()
        return drained


def build_runtime(
    repository: ConfigRepository,
    logger: structlog.BoundLogger | None = None,
) -> ServiceRuntime:
    """Wire the pipeline from configuration."""

    global_config = repository.load_global_config()
    logger = logger or structlog.get_logger("scrapevault")
    extractor = Extractor(logger=logger.bind(component="extractor"))
    router = AcquisitionRouter(
        static=StaticFetchStrategy(
            global_config, extractor=extractor, logger=logger.bind(component="fetcher")
        ),
        dynamic=DynamicRenderStrategy(
            global_config, extractor=extractor, logger=logger.bind(component="browser")
        ),
        logger=logger.bind(component="router"),
    )
    sqlite = SQLiteManager()
    store = RecordStore(sqlite, repository.resolve(global_config.database_path))
    thread_pool = ThreadPoolManager(
        default_workers=global_config.batch_workers,
        pool_sizes={
            BATCH_POOL: global_config.batch_workers,
            BROWSER_POOL: global_config.browser_workers,
        },
    )
    job_queue = JobQueue(logger=logger.bind(component="scheduler"))
    orchestrator = BatchOrchestrator(
        router,
        DedupGate(store, logger=logger.bind(component="dedup")),
        thread_pool,
        job_queue=job_queue,
        logger=logger.bind(component="orchestrator"),
    )
    service = ScrapeService(
        orchestrator, store, global_config, logger=logger.bind(component="service")
    )
    return ServiceRuntime(
        service=service,
        job_queue=job_queue,
        thread_pool=thread_pool,
        router=router,
        sqlite=sqlite,
    )


__all__ = ["ExportResult", "ScrapeService", "ServiceRuntime", "build_runtime"]
