"""
Measurement run orchestrator.

Splits the job list into fixed-size batches and runs each batch
through three strictly sequential phases:

1. automation: a fresh trace collector (browser) processes the jobs
   and is always closed afterwards;
2. analysis: each discovered trace file is decoded and attributed
   into its own accumulator, merged into the batch's counters only
   if the whole file succeeded;
3. persistence: the batch's counters are flushed to the aggregation
   store in one transaction, then consumed trace files are optionally
   deleted.

Problems with a single trace file are logged and skipped.  Store
failures propagate and end the run.
"""

from __future__ import annotations

import asyncio
import dataclasses
import pathlib
from collections.abc import Awaitable, Callable
from typing import Protocol

from apiusage.analysis.accumulator import ApiUsageAccumulator
from apiusage.analysis.attribution import Analyser
from apiusage.config import Settings
from apiusage.data import loader
from apiusage.models import jobs
from apiusage.pipeline import discovery
from apiusage.storage.aggregate_store import AggregationStore
from apiusage.trace import reader
from apiusage.utils import errors, files, logger

log = logger.create_logger("Pipeline")


class TraceCollector(Protocol):
    """Turns page-load jobs into trace files."""

    async def process_jobs(self, job_list: list[jobs.ProfileJob]) -> list[pathlib.Path]: ...

    async def close(self) -> None: ...


CollectorFactory = Callable[[], Awaitable[TraceCollector]]


@dataclasses.dataclass
class BatchAnalysis:
    """Counters and per-file outcome of analysing one batch of traces."""

    accumulator: ApiUsageAccumulator = dataclasses.field(default_factory=ApiUsageAccumulator)
    analysed: list[pathlib.Path] = dataclasses.field(default_factory=list)
    skipped: list[pathlib.Path] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class RunSummary:
    """Totals for a pipeline run."""

    batches: int = 0
    files_analysed: int = 0
    files_skipped: int = 0
    rows_written: int = 0
    calls: int = 0


async def analyse_trace_file(
    path: pathlib.Path,
    analyser: Analyser,
    max_trace_bytes: int,
) -> ApiUsageAccumulator | None:
    """Analyse one trace file into a fresh accumulator.

    Returns ``None`` (after logging a warning) when the file is too
    large, unreadable, not a trace document, or corrupt.  Partial
    counts from a failed file are discarded.
    """
    try:
        size = await files.file_size(path)
    except OSError as exc:
        log.warn("Cannot read trace file, skipping", {"path": str(path), "error": str(exc)})
        return None

    if size > max_trace_bytes:
        log.warn(
            "Trace file too large, skipping",
            {"path": str(path), "bytes": size, "limit": max_trace_bytes},
        )
        return None

    try:
        raw = await files.read_bytes(path)
    except OSError as exc:
        log.warn("Cannot read trace file, skipping", {"path": str(path), "error": str(exc)})
        return None

    counters = ApiUsageAccumulator()
    try:
        document = reader.decode_trace(raw)
        analyser.analyse(document, counters)
    except errors.TraceError as exc:
        log.warn(
            "Invalid trace file, skipping",
            {"path": str(path), "error": errors.get_error_message(exc)},
        )
        return None
    return counters


class Pipeline:
    """Drives batches of jobs from browser automation to the aggregate store."""

    def __init__(
        self,
        job_list: list[jobs.ProfileJob],
        store: AggregationStore,
        collector_factory: CollectorFactory | None,
        settings: Settings,
        analyser: Analyser | None = None,
    ) -> None:
        self._batches = loader.chunk_jobs(job_list, settings.batch_size)
        self._store = store
        self._collector_factory = collector_factory
        self._settings = settings
        self._analyser = analyser or Analyser()

    # ==========================================================================
    # Analysis
    # ==========================================================================

    async def analyse_file(self, path: pathlib.Path) -> ApiUsageAccumulator | None:
        """Analyse one trace file; return its counters or ``None`` if skipped."""
        return await analyse_trace_file(path, self._analyser, self._settings.max_trace_bytes)

    async def analyse_files(self, paths: list[pathlib.Path]) -> BatchAnalysis:
        """Analyse *paths* into one set of batch counters."""
        analysis = BatchAnalysis()
        for path in paths:
            counters = await self.analyse_file(path)
            if counters is None:
                analysis.skipped.append(path)
                continue
            analysis.accumulator.merge(counters)
            analysis.analysed.append(path)
        log.info(
            "Traces analysed",
            {
                "analysed": len(analysis.analysed),
                "skipped": len(analysis.skipped),
                "keys": len(analysis.accumulator),
                "calls": analysis.accumulator.total_calls,
            },
        )
        return analysis

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _remove_traces(self, paths: list[pathlib.Path]) -> None:
        for path in paths:
            try:
                await files.remove_file(path)
            except OSError as exc:
                log.warn("Failed to delete trace file", {"path": str(path), "error": str(exc)})
        log.debug("Trace files deleted", {"count": len(paths)})

    async def _persist(self, analysis: BatchAnalysis, summary: RunSummary) -> None:
        summary.rows_written += await asyncio.to_thread(self._store.flush, analysis.accumulator)
        summary.calls += analysis.accumulator.total_calls
        summary.files_analysed += len(analysis.analysed)
        summary.files_skipped += len(analysis.skipped)
        summary.batches += 1
        if self._settings.clear_report_dir:
            await self._remove_traces(analysis.analysed)

    # ==========================================================================
    # Runs
    # ==========================================================================

    async def _collect(self, batch: list[jobs.ProfileJob]) -> list[pathlib.Path]:
        if self._collector_factory is None:
            raise RuntimeError("No trace collector configured")
        collector = await self._collector_factory()
        try:
            return await collector.process_jobs(batch)
        finally:
            await collector.close()

    async def run(self) -> RunSummary:
        """Process every batch: automation, then analysis, then persistence."""
        self._settings.report_dir.mkdir(parents=True, exist_ok=True)
        summary = RunSummary()
        log.section("Measurement Run")
        log.info(
            "Run configuration",
            {
                "batches": len(self._batches),
                "batchSize": self._settings.batch_size,
                "discovery": self._settings.trace_discovery,
                "clearReportDir": self._settings.clear_report_dir,
            },
        )

        for index, batch in enumerate(self._batches, start=1):
            label = f"batch-{index}"
            log.subsection(f"Batch {index}/{len(self._batches)} ({len(batch)} jobs)")
            log.start_timer(label)

            produced = await self._collect(batch)
            trace_paths = await discovery.discover_traces(
                self._settings.trace_discovery, self._settings.report_dir, produced
            )
            analysis = await self.analyse_files(trace_paths)
            await self._persist(analysis, summary)

            log.end_timer(label, f"Batch {index} complete")

        log.success("Run complete", dataclasses.asdict(summary))
        return summary

    async def analyse_directory(self) -> RunSummary:
        """Analyse the trace files already in the report directory, without automation."""
        summary = RunSummary()
        log.section("Analysis-Only Run")
        trace_paths = await files.list_trace_files(self._settings.report_dir)
        log.info("Trace files found", {"count": len(trace_paths), "dir": str(self._settings.report_dir)})
        analysis = await self.analyse_files(trace_paths)
        await self._persist(analysis, summary)
        log.success("Analysis complete", dataclasses.asdict(summary))
        return summary
