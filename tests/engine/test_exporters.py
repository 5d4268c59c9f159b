from __future__ import annotations

import csv
import io
import json

import pytest

from scrapevault.engine.exporter import (
    SUPPORTED_FORMATS,
    CsvExporter,
    HtmlExporter,
    JsonExporter,
    get_exporter,
)
from scrapevault.errors import UnsupportedExportFormat


def test_get_exporter_is_case_insensitive() -> None:
    assert isinstance(get_exporter("CSV"), CsvExporter)
    assert isinstance(get_exporter(" json "), JsonExporter)
    assert isinstance(get_exporter("Html"), HtmlExporter)
    assert SUPPORTED_FORMATS == ("csv", "json", "html")
    with pytest.raises(UnsupportedExportFormat) as excinfo:
        get_exporter("pdf")
    assert excinfo.value.format == "pdf"


def test_csv_quotes_fields(make_record) -> None:
    record = make_record(title='Say "hi", world', is_dynamic=True)
    body = CsvExporter().render([record])
    lines = body.splitlines()
    assert lines[0] == "Id,Url,Title,ScrapedDate,ContentType,IsDynamicContent"
    row = next(csv.reader(io.StringIO(lines[1])))
    assert row == [
        record.id,
        record.url,
        'Say "hi", world',
        "2024-01-01 10:00:00",
        "text/html",
        "True",
    ]


def test_json_renders_views(make_record) -> None:
    record = make_record(content="y" * 30, metadata={"k": "v"})
    payload = json.loads(JsonExporter(preview_length=10).render([record]))
    assert payload[0]["id"] == record.id
    assert payload[0]["contentPreview"] == "y" * 10 + "..."
    assert payload[0]["metadata"] == {"k": "v"}
    assert JsonExporter().render([]) == "[]"


def test_html_escapes_text(make_record) -> None:
    record = make_record(
        url="https://example.com/?a=1&b=<2>",
        title="<script>alert(1)</script>",
        content="<p>body</p>",
    )
    body = HtmlExporter().render([record])
    assert body.startswith("<!DOCTYPE html>")
    assert "<script>alert(1)</script>" not in body
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in body
    assert "https://example.com/?a=1&amp;b=&lt;2&gt;" in body
    assert "&lt;p&gt;body&lt;/p&gt;" in body
    assert "<th>Content Preview</th>" in body
    assert body.rstrip().endswith("</html>")
