"""
Job list loader.

Job files are JSON, either a bare list of jobs or an object with
``jobs`` and optional ``firefoxPrefs``.  A bundled example job list
lives alongside this module in the jobs/ subdirectory.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

from apiusage.models import jobs

# Resolve path to the data directory (same directory as this module)
_DATA_DIR = pathlib.Path(__file__).resolve().parent

EXAMPLE_JOBS_FILE = _DATA_DIR / "jobs" / "example-jobs.json"

# ============================================================================
# JSON File Loading
# ============================================================================


def _load_json(path: pathlib.Path) -> Any:
    """Load and parse a JSON file.

    Raises:
        FileNotFoundError: If the JSON file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    if not path.exists():
        raise FileNotFoundError(f"Job file not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise json.JSONDecodeError(
                f"Invalid JSON in {path.name}: {exc.msg}",
                exc.doc,
                exc.pos,
            ) from exc


# ============================================================================
# Job Loading
# ============================================================================


def load_job_file(path: str | pathlib.Path | None = None) -> jobs.JobFile:
    """Load and validate a job file.

    Falls back to the bundled example jobs when *path* is ``None``.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
        pydantic.ValidationError: If a job is malformed.
    """
    raw = _load_json(pathlib.Path(path) if path is not None else EXAMPLE_JOBS_FILE)
    if isinstance(raw, list):
        raw = {"jobs": raw}
    return jobs.JobFile.model_validate(raw)


def chunk_jobs(job_list: list[jobs.ProfileJob], size: int) -> list[list[jobs.ProfileJob]]:
    """Split *job_list* into consecutive batches of at most *size* jobs."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    return [job_list[i : i + size] for i in range(0, len(job_list), size)]
