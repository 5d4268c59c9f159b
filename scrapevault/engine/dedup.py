"""Content-fingerprint deduplication in front of the record store."""

from __future__ import annotations

import structlog

from ..errors import DuplicateContentError, StorageError
from ..infra.storage import RecordStore
from ..models import DedupOutcome, Record
from .fingerprint import fingerprint_record


class DedupGate:
    """Persist a record unless an identical title/content pair is already stored.

    Degraded records from a strategy are fingerprinted and stored like any
    other page; only transient records from a crash handler skip the store.

    The store's unique index on ``content_hash`` decides races: when two
    writers insert the same fingerprint, the loser re-reads and returns the
    winner's record.
    """

    def __init__(self, store: RecordStore, logger: structlog.BoundLogger | None = None) -> None:
        self.store = store
        self.logger = logger or structlog.get_logger("scrapevault.dedup")

    def save(self, record: Record) -> DedupOutcome:
        if record.transient:
            return DedupOutcome(record=record, created=False)

        candidate = fingerprint_record(record)
        existing = self.store.find_by_hash(candidate.content_hash)
        if existing is not None:
            self.logger.info(
                "duplicate_content", url=candidate.url, existing_id=existing.id
            )
            return DedupOutcome(record=existing, created=False)

        try:
            stored = self.store.insert(candidate)
        except DuplicateContentError:
            winner = self.store.find_by_hash(candidate.content_hash)
            if winner is None:
                raise StorageError(
                    f"Record with hash {candidate.content_hash} vanished after a duplicate insert"
                )
            self.logger.info("duplicate_content_race", url=candidate.url, existing_id=winner.id)
            return DedupOutcome(record=winner, created=False)

        self.logger.info("record_saved", url=stored.url, id=stored.id)
        return DedupOutcome(record=stored, created=True)


__all__ = ["DedupGate"]
