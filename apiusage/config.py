"""
Pipeline configuration.

Centralises the environment variable names and default values for a
measurement run.  Uses ``pydantic_settings.BaseSettings`` for
automatic environment variable binding, type coercion, and
validation.  The CLI loads ``.env`` before settings are read.
"""

from __future__ import annotations

import pathlib
from typing import Literal

import pydantic
import pydantic_settings

# Largest string a trace decoder should be asked to hold (just under 512 MiB).
DEFAULT_MAX_TRACE_BYTES = 0x1FFFFFE8

DEFAULT_BATCH_SIZE = 10

TraceDiscovery = Literal["batch", "directory"]


class Settings(pydantic_settings.BaseSettings):
    """Settings for a measurement run.

    Attributes:
        firefox_path: Firefox executable; ``None`` uses Playwright's build.
        report_dir: Directory the browser writes trace files into.
        db_path: SQLite file holding the aggregate table.
        jobs_file: Job list; ``None`` uses the bundled example jobs.
        batch_size: Jobs per browser session and per store flush.
        clear_report_dir: Delete trace files once they are flushed.
        trace_discovery: ``batch`` analyses only the files the batch
            produced; ``directory`` analyses every trace file present.
        max_trace_bytes: Trace files larger than this are skipped.
        headless: Run the browser without a window.
    """

    model_config = pydantic_settings.SettingsConfigDict(
        extra="ignore", populate_by_name=True, validate_default=True
    )

    firefox_path: str | None = pydantic.Field(default=None, validation_alias="FIREFOX_PATH")
    report_dir: pathlib.Path = pydantic.Field(
        default=pathlib.Path("reports"), validation_alias="REPORT_DIR"
    )
    db_path: pathlib.Path = pydantic.Field(
        default=pathlib.Path("analysis.db"), validation_alias="DB_PATH"
    )
    jobs_file: pathlib.Path | None = pydantic.Field(default=None, validation_alias="JOBS_FILE")
    batch_size: int = pydantic.Field(
        default=DEFAULT_BATCH_SIZE, ge=1, validation_alias="BATCH_SIZE"
    )
    clear_report_dir: bool = pydantic.Field(default=False, validation_alias="CLEAR_REPORT_DIR")
    trace_discovery: TraceDiscovery = pydantic.Field(
        default="batch", validation_alias="TRACE_DISCOVERY"
    )
    max_trace_bytes: int = pydantic.Field(
        default=DEFAULT_MAX_TRACE_BYTES, gt=0, validation_alias="MAX_TRACE_BYTES"
    )
    headless: bool = pydantic.Field(default=False, validation_alias="HEADLESS")

    @pydantic.field_validator("report_dir", "db_path", "jobs_file")
    @classmethod
    def _resolve_path(cls, value: pathlib.Path | None) -> pathlib.Path | None:
        return value.expanduser().resolve() if value is not None else None
