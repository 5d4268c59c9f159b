"""Typer CLI entrypoint for scrapevault."""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

import typer
from typer import BadParameter
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .errors import RequestValidationError, StorageError
from .logging_conf import configure_logging, log_path, tail_log
from .service import ScrapeService, ServiceRuntime, build_runtime

app = typer.Typer(
    help="scrapevault command line tools",
    no_args_is_help=True,
    rich_markup_mode=None,
)
records_app = typer.Typer(
    name="records",
    help="Browse and delete stored records",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    runtime: ServiceRuntime
    log_dir: Path

    @property
    def service(self) -> ScrapeService:
        return self.runtime.service

    def close(self) -> None:
        timeout = self.repository.load_global_config().job_drain_timeout
        if not self.runtime.close(drain_timeout=timeout):
            console.print("Some background jobs did not finish before shutdown.", style="yellow")


def _parse_datetime_option(value: Optional[str], option_name: str) -> Optional[datetime]:
    if value is None:
        return None
    text = value.strip()
    if not text:
        raise BadParameter(f"{option_name} must not be empty.")
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        candidate = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise BadParameter(
            f"{option_name} expects an ISO 8601 timestamp, e.g. 2024-10-14T08:00+08:00."
        ) from exc
    if candidate.tzinfo is None:
        candidate = candidate.replace(tzinfo=timezone.utc)
    else:
        candidate = candidate.astimezone(timezone.utc)
    return candidate


def _parse_selectors(values: Sequence[str]) -> dict[str, str]:
    selectors: dict[str, str] = {}
    for item in values:
        name, sep, css = item.partition("=")
        if not sep or not name.strip() or not css.strip():
            raise BadParameter(f"Selector must look like name=css, got {item!r}.")
        selectors[name.strip()] = css.strip()
    return selectors


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    logger = configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    runtime = build_runtime(repository, logger=logger)
    return AppState(repository=repository, runtime=runtime, log_dir=repository.locator.logs_dir)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except RequestValidationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    except StorageError as exc:
        console.print(f"Storage failure: {exc}", style="red")
        raise typer.Exit(code=2) from exc


def _render_records_table(views: Sequence[dict[str, Any]], title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Title", overflow="fold")
    table.add_column("Scraped", style="green")
    table.add_column("Status", justify="right")
    for view in views:
        status = str(view.get("statusCode", ""))
        table.add_row(
            str(view["id"]),
            str(view["url"]),
            str(view["title"]),
            str(view["scrapedDate"]),
            f"[red]{status}[/red]" if view.get("statusCode", 200) >= 500 else status,
        )
    return table


def _print_scrape_result(result: Any, as_json: bool) -> None:
    if as_json:
        console.print_json(data=result)
        return
    if "jobId" in result or "jobIds" in result:
        job_ids = [result["jobId"]] if "jobId" in result else result["jobIds"]
        table = Table(title="Queued jobs", box=box.SIMPLE_HEAD)
        table.add_column("Job ID", style="cyan")
        for job_id in job_ids:
            table.add_row(job_id)
        console.print(table)
        return
    views = result if isinstance(result, list) else [result]
    console.print(_render_records_table(views, f"Scraped {len(views)} record(s)"))


def _run_payload(state: AppState, payload: Any, background: bool) -> Any:
    with _reported_errors():
        if background:
            return state.service.enqueue(payload)
        return state.service.scrape(payload)


app.add_typer(records_app, name="records", help="Browse and delete stored records")
app.add_typer(log_app, name="log", help="Inspect log files")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True),
) -> None:
    state = build_state(verbose)
    ctx.obj = state
    ctx.call_on_close(state.close)


@app.command("scrape", help="Scrape one or more URLs and store unique results.")
def scrape(
    ctx: typer.Context,
    urls: List[str] = typer.Argument(..., help="Target URLs."),
    dynamic: bool = typer.Option(False, "--dynamic", help="Render with headless Chromium.", is_flag=True),
    wait_ms: Optional[int] = typer.Option(None, "--wait-ms", help="Settle delay after navigation."),
    selector: List[str] = typer.Option([], "--selector", help="Named capture, name=css[::mode]."),
    background: bool = typer.Option(False, "--background", help="Queue instead of waiting.", is_flag=True),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    payload: dict[str, Any] = {
        "useDynamicScraping": dynamic,
        "selectors": _parse_selectors(selector),
    }
    if wait_ms is not None:
        payload["waitTimeMs"] = wait_ms
    if len(urls) == 1:
        payload["url"] = urls[0]
    else:
        payload["urls"] = list(urls)
    _print_scrape_result(_run_payload(state, payload, background), as_json)


@app.command("submit", help="Submit a raw JSON scrape request ('-' reads stdin).")
def submit(
    ctx: typer.Context,
    request_file: str = typer.Argument(..., help="Path to a JSON request file, or '-'."),
    background: bool = typer.Option(False, "--background", help="Queue instead of waiting.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        if request_file == "-":
            text = sys.stdin.read()
        else:
            text = Path(request_file).read_text(encoding="utf-8")
        payload = json.loads(text)
    except (OSError, ValueError) as exc:
        console.print(f"Could not read request: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print_json(data=_run_payload(state, payload, background))


@records_app.command("list", help="List stored records, newest first.")
def records_list(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page"),
    page_size: int = typer.Option(20, "--page-size"),
    url_filter: Optional[str] = typer.Option(None, "--url-filter", help="URL substring."),
    since: Optional[str] = typer.Option(None, "--since", help="ISO 8601 lower bound."),
    until: Optional[str] = typer.Option(None, "--until", help="ISO 8601 upper bound."),
) -> None:
    state = _get_state(ctx)
    with _reported_errors():
        result = state.service.list_records(
            page=page,
            page_size=page_size,
            url_filter=url_filter,
            start_date=_parse_datetime_option(since, "--since"),
            end_date=_parse_datetime_option(until, "--until"),
        )
    if not result["items"]:
        console.print("No records stored yet.", style="dim")
        return
    title = (
        f"Page {result['page']} · {len(result['items'])} of {result['totalCount']} records"
    )
    console.print(_render_records_table(result["items"], title))


@records_app.command("show", help="Show one record as JSON.")
def records_show(ctx: typer.Context, record_id: str = typer.Argument(...)) -> None:
    state = _get_state(ctx)
    with _reported_errors():
        view = state.service.get_record(record_id)
    if view is None:
        console.print(f"Record {record_id} not found.", style="red")
        raise typer.Exit(code=1)
    console.print_json(data=view)


@records_app.command("delete", help="Delete one record.")
def records_delete(
    ctx: typer.Context,
    record_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Delete record {record_id}?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    with _reported_errors():
        deleted = state.service.delete_record(record_id)
    if not deleted:
        console.print(f"Record {record_id} not found.", style="red")
        raise typer.Exit(code=1)
    console.print(f"Record {record_id} deleted.", style="green")


@app.command("export", help="Export stored records as csv, json or html.")
def export(
    ctx: typer.Context,
    fmt: str = typer.Argument(..., metavar="FORMAT", help="csv, json or html."),
    output: Optional[Path] = typer.Option(None, "--output", help="Destination file or directory."),
    url_filter: Optional[str] = typer.Option(None, "--url-filter", help="URL substring."),
    since: Optional[str] = typer.Option(None, "--since", help="ISO 8601 lower bound."),
    until: Optional[str] = typer.Option(None, "--until", help="ISO 8601 upper bound."),
) -> None:
    state = _get_state(ctx)
    with _reported_errors():
        result = state.service.export(
            {
                "format": fmt,
                "urlFilter": url_filter,
                "startDate": _parse_datetime_option(since, "--since"),
                "endDate": _parse_datetime_option(until, "--until"),
            }
        )
    if output is None:
        outputs_dir = state.repository.resolve(state.repository.load_global_config().outputs_dir)
        target = outputs_dir / result.filename
    elif output.is_dir():
        target = output / result.filename
    else:
        target = output
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(result.body, encoding="utf-8")
    console.print(f"Exported {result.media_type} to {target}", style="green")


@log_app.command("show", help="Show the most recent log lines.")
def log_show(
    ctx: typer.Context,
    lines: int = typer.Option(100, "--lines", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show error.log instead.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    content = tail_log(log_path(state.log_dir, errors_only=errors), lines)
    if not content:
        console.print("No log entries yet.", style="dim")
        return
    label = "error log" if errors else "application log"
    console.print(f"{label} · last {len(content)} lines", style="cyan")
    console.print("".join(content), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
