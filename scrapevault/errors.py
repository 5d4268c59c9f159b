"""Exception hierarchy shared by the service, storage, and CLI layers."""

from __future__ import annotations


class ScrapeVaultError(Exception):
    """Base class for all errors raised deliberately by scrapevault."""


class RequestValidationError(ScrapeVaultError, ValueError):
    """A request was rejected before any acquisition work started."""


class UnsupportedExportFormat(RequestValidationError):
    """The requested export format has no renderer."""

    def __init__(self, fmt: str, supported: tuple[str, ...]) -> None:
        self.format = fmt
        self.supported = supported
        super().__init__(
            f"Unsupported export format '{fmt}'. Supported formats: {', '.join(supported)}"
        )


class StorageError(ScrapeVaultError, RuntimeError):
    """The record store failed; the record may not be durably persisted."""


class DuplicateContentError(StorageError):
    """Insert rejected because a record with the same fingerprint already exists."""

    def __init__(self, content_hash: str) -> None:
        self.content_hash = content_hash
        super().__init__(f"Record with content hash {content_hash} already exists")


__all__ = [
    "DuplicateContentError",
    "RequestValidationError",
    "ScrapeVaultError",
    "StorageError",
    "UnsupportedExportFormat",
]
