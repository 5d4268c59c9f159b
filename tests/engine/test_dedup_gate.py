from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from threading import Barrier

import pytest

from scrapevault.engine.dedup import DedupGate
from scrapevault.errors import DuplicateContentError, StorageError
from scrapevault.models import Record


def test_same_title_and_content_share_one_row(record_store, make_record) -> None:
    gate = DedupGate(record_store)
    first = make_record(url="https://example.com/one")
    second = make_record(
        url="https://example.com/two", scraped_at=first.scraped_at + timedelta(hours=1)
    )

    saved_first = gate.save(first)
    saved_second = gate.save(second)

    assert saved_first.created is True
    assert saved_second.created is False
    assert saved_first.record.id == saved_second.record.id
    assert saved_first.record.content_hash == saved_second.record.content_hash
    assert saved_second.record.url == "https://example.com/one"
    assert record_store.count() == 1


def test_different_content_creates_new_rows(record_store, make_record) -> None:
    gate = DedupGate(record_store)
    gate.save(make_record(content="one"))
    gate.save(make_record(content="two"))
    assert record_store.count() == 2


def test_degraded_records_are_persisted(record_store) -> None:
    gate = DedupGate(record_store)
    degraded = Record.degraded(
        "https://spa.example.com", "Error: Dynamic Scraping Failed", "Dynamic scraping error: x",
        is_dynamic=True, error="x",
    )
    outcome = gate.save(degraded)
    assert outcome.created is True
    assert outcome.record.content_hash
    stored = record_store.find_by_id(outcome.record.id)
    assert stored is not None
    assert stored.status_code == 500
    assert stored.is_dynamic is True
    assert stored.title == "Error: Dynamic Scraping Failed"

    again = gate.save(
        Record.degraded(
            "https://other.example.com", "Error: Dynamic Scraping Failed", "Dynamic scraping error: x",
            is_dynamic=True, error="x",
        )
    )
    assert again.created is False
    assert again.record.id == outcome.record.id
    assert record_store.count() == 1


def test_transient_records_skip_the_store(record_store) -> None:
    gate = DedupGate(record_store)
    crashed = Record.degraded(
        "https://down.example.com", "Error: Scraping Failed", "Failed to scrape URL: x",
        is_dynamic=False, error="x", transient=True,
    )
    outcome = gate.save(crashed)
    assert outcome.record is crashed
    assert outcome.created is False
    assert record_store.count() == 0


class RacingStore:
    """Store whose first lookup misses although another writer already won."""

    def __init__(self, winner: Record) -> None:
        self.winner = winner
        self.lookups = 0

    def find_by_hash(self, content_hash: str) -> Record | None:
        self.lookups += 1
        return None if self.lookups == 1 else self.winner

    def insert(self, record: Record) -> Record:
        raise DuplicateContentError(record.content_hash)


def test_insert_race_falls_back_to_existing_record(make_record) -> None:
    winner = make_record(url="https://example.com/winner")
    store = RacingStore(winner)
    outcome = DedupGate(store).save(make_record(url="https://example.com/loser"))
    assert outcome.created is False
    assert outcome.record is winner
    assert store.lookups == 2


def test_other_storage_errors_propagate(make_record) -> None:
    class BrokenStore:
        def find_by_hash(self, content_hash: str) -> None:
            return None

        def insert(self, record: Record) -> Record:
            raise StorageError("disk full")

    with pytest.raises(StorageError, match="disk full"):
        DedupGate(BrokenStore()).save(make_record())


def test_concurrent_saves_store_exactly_one_row(record_store, make_record) -> None:
    gate = DedupGate(record_store)
    workers = 8
    barrier = Barrier(workers)

    def save(index: int):
        barrier.wait()
        return gate.save(make_record(url=f"https://example.com/{index}"))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(save, range(workers)))

    assert record_store.count() == 1
    assert len({outcome.record.id for outcome in outcomes}) == 1
    assert sum(outcome.created for outcome in outcomes) == 1
