from __future__ import annotations

import csv
import io
import json
import re
from datetime import datetime, timedelta, timezone

import pytest

from scrapevault.config import GlobalConfig
from scrapevault.engine.dedup import DedupGate
from scrapevault.engine.router import AcquisitionRouter
from scrapevault.engine.thread_pool import ThreadPoolManager
from scrapevault.errors import RequestValidationError, UnsupportedExportFormat
from scrapevault.engine.fingerprint import fingerprint_record
from scrapevault.models import Record, ScrapeRequest
from scrapevault.orchestrator import BatchOrchestrator
from scrapevault.service import ScrapeService

VIEW_KEYS = {
    "id",
    "url",
    "title",
    "contentPreview",
    "content",
    "metadata",
    "scrapedDate",
    "contentType",
    "isDynamicContent",
    "statusCode",
}


class EchoStrategy:
    def acquire(self, request: ScrapeRequest) -> Record:
        if "down" in request.url:
            return Record.degraded(
                request.url, "Error: Scraping Failed", "Failed to scrape URL: refused",
                is_dynamic=request.use_dynamic_rendering, error="refused",
            )
        return Record(
            url=request.url,
            title=f"Title for {request.url}",
            content="x" * 250 if "long" in request.url else f"Body {request.url}",
            metadata={"selectors": dict(request.selectors)},
            is_dynamic=request.use_dynamic_rendering,
        )


class RecordingQueue:
    def __init__(self) -> None:
        self.jobs: list[tuple] = []

    def enqueue(self, func, *args):  # noqa: ANN001
        self.jobs.append((func, args))
        return f"job-{len(self.jobs)}"


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def service(record_store, queue):
    pools = ThreadPoolManager(default_workers=4)
    orchestrator = BatchOrchestrator(
        AcquisitionRouter(EchoStrategy(), EchoStrategy()),
        DedupGate(record_store),
        pools,
        job_queue=queue,
    )
    yield ScrapeService(orchestrator, record_store, GlobalConfig(export_limit=3))
    pools.shutdown(wait=True)


def test_single_scrape_returns_view(service) -> None:
    view = service.scrape(
        {"url": "https://example.com/long", "useDynamicScraping": True, "selectors": {"h": "h1"}}
    )
    assert set(view) == VIEW_KEYS
    assert view["isDynamicContent"] is True
    assert view["contentPreview"] == "x" * 200 + "..."
    assert len(view["content"]) == 250
    assert view["metadata"] == {"selectors": {"h": "h1"}}
    assert datetime.fromisoformat(view["scrapedDate"]).tzinfo is not None


def test_single_url_batch_has_same_shape_as_single(service) -> None:
    single = service.scrape({"url": "https://example.com"})
    batch = service.scrape({"urls": ["https://example.com"]})
    assert isinstance(batch, dict)
    assert set(batch) == set(single)
    assert batch["id"] == single["id"]


def test_batch_key_is_case_insensitive(service) -> None:
    result = service.scrape({"URLS": ["https://example.com/a", "https://example.com/b"], "WaitTimeMs": 0})
    assert isinstance(result, list)
    assert [item["url"] for item in result] == ["https://example.com/a", "https://example.com/b"]


def test_batch_with_failure_reports_inline(service) -> None:
    result = service.scrape(
        {"urls": ["https://example.com/a", "https://down.example.com", "https://example.com/b"]}
    )
    assert [item["statusCode"] for item in result] == [200, 500, 200]
    assert result[1]["title"] == "Error: Scraping Failed"


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"url": "not-a-url"}, "Invalid URL format"),
        ({"url": "   "}, "Invalid URL format"),
        ({}, "Invalid URL format"),
        ({"urls": []}, "No valid URLs provided"),
        ({"urls": None}, "No valid URLs provided"),
        ({"urls": ["", None, "   ", "not-a-url"]}, "No valid URLs found in the request"),
    ],
)
def test_validation_errors(service, payload, message) -> None:
    with pytest.raises(RequestValidationError, match=message):
        service.scrape(payload)


def test_non_mapping_payload_rejected(service) -> None:
    with pytest.raises(RequestValidationError):
        service.scrape(["https://example.com"])


def test_parse_applies_configured_default_wait(service) -> None:
    service.global_config = GlobalConfig(default_wait_ms=750)
    assert service.parse({"url": "https://example.com"}).render_wait_ms == 750
    assert service.parse({"urls": ["https://example.com"], "waitTimeMs": None}).render_wait_ms == 750
    assert service.parse({"url": "https://example.com", "wait_time_ms": 0}).render_wait_ms == 0
    assert service.parse({"url": "https://example.com", "renderWaitMs": 20}).render_wait_ms == 20


def test_enqueue_shapes(service, queue) -> None:
    assert service.enqueue({"url": "https://example.com"}) == {"jobId": "job-1"}
    assert service.enqueue({"urls": ["https://example.com/a", "nope", "https://example.com/b"]}) == {
        "jobIds": ["job-2", "job-3"]
    }
    assert service.enqueue({"urls": ["https://example.com/c"]}) == {"jobIds": ["job-4"]}
    with pytest.raises(RequestValidationError, match="Invalid URL format"):
        service.enqueue({"url": ""})
    assert len(queue.jobs) == 4


def _seed(record_store, make_record, count: int) -> None:
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    for index in range(count):
        record_store.insert(
            fingerprint_record(
                make_record(
                    url=f"https://example.com/{index}",
                    title=f"Title {index}",
                    content=f"Body {index}",
                    scraped_at=base + timedelta(hours=index),
                )
            )
        )


@pytest.mark.parametrize(
    ("page", "page_size", "expected_page", "expected_size"),
    [(0, 0, 1, 20), (-3, 500, 1, 100), (2, 2, 2, 2)],
)
def test_list_records_clamps_paging(
    service, record_store, make_record, page, page_size, expected_page, expected_size
) -> None:
    _seed(record_store, make_record, 5)
    result = service.list_records(page=page, page_size=page_size)
    assert result["page"] == expected_page
    assert result["pageSize"] == expected_size
    assert result["totalCount"] == 5


def test_list_records_filters(service, record_store, make_record) -> None:
    _seed(record_store, make_record, 5)
    result = service.list_records(url_filter="example.com/3")
    assert [item["url"] for item in result["items"]] == ["https://example.com/3"]

    result = service.list_records(start_date="2024-03-01T03:00:00Z")
    assert result["totalCount"] == 2

    with pytest.raises(RequestValidationError):
        service.list_records(end_date="yesterday")


def test_get_and_delete_record(service) -> None:
    view = service.scrape({"url": "https://example.com/keep"})
    assert service.get_record(view["id"])["title"] == view["title"]
    assert service.delete_record(view["id"]) is True
    assert service.get_record(view["id"]) is None
    assert service.delete_record(view["id"]) is False


def test_export_csv_respects_limit_and_filename(service, record_store, make_record) -> None:
    _seed(record_store, make_record, 5)
    result = service.export({"Format": "CSV"})
    assert re.fullmatch(r"scraped-data-\d{4}-\d{2}-\d{2}-\d{6}\.csv", result.filename)
    assert result.media_type == "text/csv"
    rows = list(csv.reader(io.StringIO(result.body)))
    assert rows[0] == ["Id", "Url", "Title", "ScrapedDate", "ContentType", "IsDynamicContent"]
    assert len(rows) == 1 + 3
    assert rows[1][1] == "https://example.com/4"


def test_export_json_with_filters(service, record_store, make_record) -> None:
    _seed(record_store, make_record, 5)
    result = service.export({"format": "json", "urlFilter": "example.com/1"})
    assert result.media_type == "application/json"
    assert result.filename.endswith(".json")
    payload = json.loads(result.body)
    assert [item["url"] for item in payload] == ["https://example.com/1"]


def test_export_rejects_unknown_format(service) -> None:
    with pytest.raises(UnsupportedExportFormat, match="csv, json, html"):
        service.export({"format": "xml"})
    with pytest.raises(RequestValidationError):
        service.export({})
