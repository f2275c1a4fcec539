"""
Trace file discovery for a batch.

``batch`` mode analyses only the files the batch's automation phase
reported.  ``directory`` mode analyses every trace file currently in
the report directory, which also picks up files placed there by
other tools (analysis-only runs).
"""

from __future__ import annotations

import pathlib

from apiusage.config import TraceDiscovery
from apiusage.utils import files


async def discover_traces(
    mode: TraceDiscovery,
    report_dir: pathlib.Path,
    produced: list[pathlib.Path],
) -> list[pathlib.Path]:
    """Return the trace files to analyse for a batch."""
    if mode == "directory":
        return await files.list_trace_files(report_dir)
    if mode != "batch":
        raise ValueError(f"Unknown trace discovery mode {mode!r}")

    seen: set[pathlib.Path] = set()
    selected: list[pathlib.Path] = []
    for path in produced:
        if path.suffix != files.TRACE_SUFFIX or path in seen:
            continue
        seen.add(path)
        selected.append(path)
    return selected
