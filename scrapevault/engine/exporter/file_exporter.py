"""CSV, JSON and HTML renderers for downloaded exports."""

from __future__ import annotations

import csv
import io
import json
from html import escape
from typing import Sequence

from ...errors import UnsupportedExportFormat
from ...models import Record, preview
from .base import EXPORT_DATE_FORMAT, BaseExporter

CSV_HEADER = ("Id", "Url", "Title", "ScrapedDate", "ContentType", "IsDynamicContent")


class CsvExporter(BaseExporter):
    name = "csv"
    media_type = "text/csv"
    extension = "csv"

    def render(self, records: Sequence[Record]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        buffer.write(",".join(CSV_HEADER) + "\n")
        for record in records:
            writer.writerow(
                [
                    record.id,
                    record.url,
                    record.title,
                    record.scraped_at.strftime(EXPORT_DATE_FORMAT),
                    record.content_type,
                    str(record.is_dynamic),
                ]
            )
        return buffer.getvalue()


class JsonExporter(BaseExporter):
    name = "json"
    media_type = "application/json"
    extension = "json"

    def render(self, records: Sequence[Record]) -> str:
        views = [record.to_view(self.preview_length) for record in records]
        return json.dumps(views, indent=2, ensure_ascii=False, default=str)


class HtmlExporter(BaseExporter):
    name = "html"
    media_type = "text/html"
    extension = "html"

    _HEAD = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Exported Scraped Data</title>
  <style>
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    tr:nth-child(even) { background-color: #f2f2f2; }
    th { text-align: left; background-color: #4CAF50; color: white; }
  </style>
</head>
<body>
  <h1>Exported Scraped Data</h1>
  <table>
    <tr>
      <th>ID</th>
      <th>URL</th>
      <th>Title</th>
      <th>Scraped Date</th>
      <th>Content Preview</th>
    </tr>
"""
    _TAIL = """  </table>
</body>
</html>
"""

    def render(self, records: Sequence[Record]) -> str:
        rows = []
        for record in records:
            url = escape(record.url)
            rows.append(
                "    <tr>\n"
                f"      <td>{escape(record.id)}</td>\n"
                f'      <td><a href="{url}" target="_blank">{url}</a></td>\n'
                f"      <td>{escape(record.title)}</td>\n"
                f"      <td>{record.scraped_at.strftime(EXPORT_DATE_FORMAT)}</td>\n"
                f"      <td>{escape(preview(record.content, self.preview_length))}</td>\n"
                "    </tr>\n"
            )
        return self._HEAD + "".join(rows) + self._TAIL


_EXPORTERS: dict[str, type[BaseExporter]] = {
    cls.name: cls for cls in (CsvExporter, JsonExporter, HtmlExporter)
}
SUPPORTED_FORMATS = tuple(_EXPORTERS)


def get_exporter(fmt: str | None, preview_length: int = 200) -> BaseExporter:
    """Resolve a renderer by case-insensitive format name."""

    key = (fmt or "").strip().lower()
    try:
        exporter_cls = _EXPORTERS[key]
    except KeyError:
        raise UnsupportedExportFormat(fmt or "", SUPPORTED_FORMATS) from None
    return exporter_cls(preview_length=preview_length)


__all__ = [
    "CSV_HEADER",
    "CsvExporter",
    "HtmlExporter",
    "JsonExporter",
    "SUPPORTED_FORMATS",
    "get_exporter",
]
