"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...models import Record

EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class BaseExporter(ABC):
    """Uniform renderer contract: a record list in, one document out."""

    #: Short format name used to select the renderer.
    name: str = ""
    media_type: str = "application/octet-stream"
    extension: str = ""

    def __init__(self, preview_length: int = 200) -> None:
        self.preview_length = preview_length

    @abstractmethod
    def render(self, records: Sequence[Record]) -> str:
        """Serialise records into the export document."""


__all__ = ["BaseExporter", "EXPORT_DATE_FORMAT"]
