"""Content fingerprints used as the deduplication key."""

from __future__ import annotations

import hashlib

from ..models import Record

_SEPARATOR = "|"


def compute_fingerprint(title: str | None, content: str | None) -> str:
    """Return the SHA-256 hex digest of ``title|content``.

    URL, metadata and timestamps are excluded so the same page body reached
    through different URLs or at different times yields one fingerprint.
    """

    payload = f"{title or ''}{_SEPARATOR}{content or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def fingerprint_record(record: Record) -> Record:
    if record.content_hash:
        return record
    return record.with_hash(compute_fingerprint(record.title, record.content))


__all__ = ["compute_fingerprint", "fingerprint_record"]
