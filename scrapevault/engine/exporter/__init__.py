"""Exporter SPI and implementations."""

from .base import BaseExporter
from .file_exporter import (
    SUPPORTED_FORMATS,
    CsvExporter,
    HtmlExporter,
    JsonExporter,
    get_exporter,
)

__all__ = [
    "BaseExporter",
    "CsvExporter",
    "HtmlExporter",
    "JsonExporter",
    "SUPPORTED_FORMATS",
    "get_exporter",
]
