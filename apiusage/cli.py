"""Command-line entry point for DOM API usage measurement."""

from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Optional

import dotenv
import pydantic
import typer
from rich.console import Console

from apiusage.analysis.accumulator import ApiUsageAccumulator
from apiusage.analysis.attribution import Analyser
from apiusage.browser.profiler import Profiler
from apiusage.config import Settings
from apiusage.data import loader
from apiusage.pipeline.orchestrator import Pipeline, RunSummary, analyse_trace_file
from apiusage.storage.aggregate_store import AggregationStore
from apiusage.utils import errors, logger

app = typer.Typer(
    help="Measure which scripts call which DOM APIs on which sites",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main() -> None:
    """Load ``.env`` before any settings are read."""
    dotenv.load_dotenv()


def _load_settings(**overrides: object) -> Settings:
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except pydantic.ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1) from e


def _open_store(db_path: pathlib.Path) -> AggregationStore:
    try:
        return AggregationStore(db_path)
    except errors.StoreUnavailableError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


def _print_summary(summary: RunSummary, db_path: pathlib.Path) -> None:
    console.print(
        f"[green]✓[/green] {summary.files_analysed} trace(s) analysed, "
        f"{summary.files_skipped} skipped, {summary.rows_written} row(s) written to {db_path}"
    )


@app.command()
def run() -> None:
    """Load pages in Firefox, capture traces and aggregate DOM API usage."""
    settings = _load_settings()

    try:
        job_file = loader.load_job_file(settings.jobs_file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading jobs:[/red] {errors.get_error_message(e)}")
        raise typer.Exit(code=1) from e

    async def collector_factory() -> Profiler:
        return await Profiler.create(settings, job_file.firefox_prefs)

    console.print(f"[blue]Jobs:[/blue] {len(job_file.jobs)}")
    console.print(f"[blue]Report directory:[/blue] {settings.report_dir}")
    console.print(f"[blue]Database:[/blue] {settings.db_path}")

    store = _open_store(settings.db_path)
    logger.start_log_file("run")
    try:
        pipeline = Pipeline(job_file.jobs, store, collector_factory, settings)
        summary = asyncio.run(pipeline.run())
    except Exception as e:
        console.print(f"[red]Run failed:[/red] {errors.get_error_message(e)}")
        raise typer.Exit(code=1) from e
    finally:
        logger.end_log_file()
        store.close()

    _print_summary(summary, settings.db_path)


@app.command()
def analyse(
    report_dir: Optional[pathlib.Path] = typer.Option(
        None, "--report-dir", help="Directory of trace files (default: REPORT_DIR)"
    ),
    db_path: Optional[pathlib.Path] = typer.Option(
        None, "--db-path", help="SQLite database path (default: DB_PATH)"
    ),
) -> None:
    """Aggregate the trace files already in a directory, without a browser."""
    settings = _load_settings(REPORT_DIR=report_dir, DB_PATH=db_path)

    if not settings.report_dir.is_dir():
        console.print(f"[red]Error:[/red] Report directory not found: {settings.report_dir}")
        raise typer.Exit(code=1)

    console.print(f"[blue]Analysing traces in:[/blue] {settings.report_dir}")

    store = _open_store(settings.db_path)
    logger.start_log_file("analyse")
    try:
        pipeline = Pipeline([], store, None, settings)
        summary = asyncio.run(pipeline.analyse_directory())
    except errors.StoreError as e:
        console.print(f"[red]Analysis failed:[/red] {e}")
        raise typer.Exit(code=1) from e
    finally:
        logger.end_log_file()
        store.close()

    _print_summary(summary, settings.db_path)


@app.command()
def export(
    traces: list[pathlib.Path] = typer.Argument(..., help="Trace files to analyse"),
    out: Optional[pathlib.Path] = typer.Option(
        None, "--out", help="Output JSON file (default: stdout)"
    ),
) -> None:
    """Analyse trace files and print the counters as JSON, without touching the database."""
    for path in traces:
        if not path.is_file():
            console.print(f"[red]Error:[/red] Trace file not found: {path}")
            raise typer.Exit(code=1)

    settings = _load_settings()
    analyser = Analyser()

    total = ApiUsageAccumulator()
    for path in traces:
        counters = asyncio.run(analyse_trace_file(path, analyser, settings.max_trace_bytes))
        if counters is None:
            console.print(f"[yellow]Skipped:[/yellow] {path}")
            continue
        total.merge(counters)

    document = total.to_json()
    if out is None:
        typer.echo(document)
        return

    out.write_text(json.dumps(json.loads(document), indent=2), encoding="utf-8")
    console.print(f"[green]✓[/green] Counters written to: {out}")


if __name__ == "__main__":
    app()
