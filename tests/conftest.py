"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from scrapevault.config import ConfigLocator, ConfigRepository, GlobalConfig
from scrapevault.infra.storage import RecordStore, SQLiteManager
from scrapevault.models import Record


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        database_path=tmp_path / "data" / "records.db",
        outputs_dir=tmp_path / "outputs",
        default_wait_ms=0,
        batch_workers=4,
        browser_workers=2,
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("SCRAPEVAULT_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def record_store(tmp_path: Path) -> Iterable[RecordStore]:
    manager = SQLiteManager()
    store = RecordStore(manager, tmp_path / "data" / "records.db")
    yield store
    manager.close_all()


@pytest.fixture
def make_record() -> Callable[..., Record]:
    def _builder(**overrides: Any) -> Record:
        base: dict[str, Any] = {
            "url": "https://example.com/page",
            "title": "Test Page",
            "content": "<html><body>Test content</body></html>",
            "content_type": "text/html",
            "scraped_at": datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc),
        }
        base.update(overrides)
        return Record(**base)

    return _builder
