from __future__ import annotations

import pytest
from pydantic import ValidationError

from scrapevault.models import (
    BatchScrapeRequest,
    Record,
    ScrapeRequest,
    has_batch_urls,
    is_valid_target_url,
    preview,
)


def test_wire_names_are_case_insensitive() -> None:
    request = ScrapeRequest.model_validate(
        {"URL": " https://example.com ", "UseDynamicScraping": True, "waittimems": 100, "Selectors": {"a": "b"}}
    )
    assert request.url == "https://example.com"
    assert request.use_dynamic_rendering is True
    assert request.render_wait_ms == 100
    assert request.selectors == {"a": "b"}


def test_defaults_and_nulls() -> None:
    request = ScrapeRequest.model_validate(
        {"url": "https://example.com", "waitTimeMs": None, "selectors": None}
    )
    assert request.render_wait_ms == 5000
    assert request.selectors == {}
    assert request.use_dynamic_rendering is False


def test_negative_wait_rejected() -> None:
    with pytest.raises(ValidationError):
        ScrapeRequest(url="https://example.com", render_wait_ms=-1)


def test_batch_for_url_shares_options() -> None:
    batch = BatchScrapeRequest.model_validate(
        {"Urls": "https://example.com", "useDynamicScraping": True, "selectors": {"t": "h1"}}
    )
    assert batch.urls == ["https://example.com"]
    single = batch.for_url("https://example.com/x")
    assert single.use_dynamic_rendering is True
    assert single.selectors == {"t": "h1"}


def test_url_helpers() -> None:
    assert has_batch_urls({"URLs": []})
    assert not has_batch_urls({"url": "x"})
    assert is_valid_target_url("https://example.com/path?q=1")
    assert not is_valid_target_url("mailto:someone@example.com")
    assert not is_valid_target_url("https://")
    assert not is_valid_target_url(None)


def test_record_view_and_degraded() -> None:
    record = Record(url="https://example.com", content="z" * 201)
    view = record.to_view()
    assert view["contentPreview"] == "z" * 200 + "..."
    assert view["metadata"] == {}
    assert preview("short") == "short"

    degraded = Record.degraded("https://x.example.com", "t", "c", is_dynamic=True, error="boom")
    assert degraded.is_degraded
    assert degraded.status_code == 500
    assert degraded.id != record.id
