"""
Coloured console logging with timers and optional per-run log files.

Every module creates its own ``Logger`` with ``create_logger("Name")``
and logs a message plus an optional dict of key=value data:

    log.info("Counts flushed", {"rows": 12, "calls": 340})

Lines go to stderr.  ``LOG_LEVEL`` (``debug``, ``info``, ``warn`` or
``error``; default ``info``) sets the lowest level printed.  When
``WRITE_TO_FILE=true`` each run started with ``start_log_file`` is
also written, without colours, to ``.logs/<run>_<timestamp>.log``.

Timers and the log-file handle live in ``contextvars`` so runs in
separate tasks keep separate state.
"""

from __future__ import annotations

import contextvars
import io
import os
import pathlib
import re
import sys
import time
from datetime import UTC, datetime

# ============================================================================
# Styles
# ============================================================================

_RESET = "\033[0m"
_BRIGHT = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_BLUE = "\033[34m"
_MAGENTA = "\033[35m"
_CYAN = "\033[36m"
_GRAY = "\033[90m"

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")

# level -> (colour, symbol, severity)
_LEVELS: dict[str, tuple[str, str, int]] = {
    "debug": (_GRAY, "•", 10),
    "timing": (_MAGENTA, "⏱", 20),
    "info": (_CYAN, "ℹ", 20),
    "success": (_GREEN, "✓", 20),
    "warn": (_YELLOW, "⚠", 30),
    "error": (_RED, "✗", 40),
}


def _threshold() -> int:
    name = os.environ.get("LOG_LEVEL", "info").lower()
    return _LEVELS.get(name, _LEVELS["info"])[2]


# ============================================================================
# Per-run state
# ============================================================================

_timers_var: contextvars.ContextVar[dict[str, tuple[float, str]]] = contextvars.ContextVar("_timers_var")
_log_stream_var: contextvars.ContextVar[io.TextIOWrapper | None] = contextvars.ContextVar(
    "_log_stream_var", default=None
)


def _timers() -> dict[str, tuple[float, str]]:
    try:
        return _timers_var.get()
    except LookupError:
        timers: dict[str, tuple[float, str]] = {}
        _timers_var.set(timers)
        return timers


# ============================================================================
# Log Files
# ============================================================================


def start_log_file(run_name: str) -> pathlib.Path | None:
    """Open a log file for the run named *run_name*.

    Does nothing unless ``WRITE_TO_FILE=true`` (read on each call, so
    a ``.env`` loaded after import applies).  Returns the file path.
    """
    if os.environ.get("WRITE_TO_FILE", "").lower() != "true":
        return None

    end_log_file()

    logs_dir = pathlib.Path.cwd() / ".logs"
    now = datetime.now(UTC)
    safe_name = re.sub(r"[^A-Za-z0-9.-]", "_", run_name)[:50]
    path = logs_dir / f"{safe_name}_{now:%Y-%m-%d_%H-%M-%S}.log"

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        stream = open(path, "a", encoding="utf-8")  # noqa: SIM115
    except OSError as exc:
        print(f"{_RED}✗ [Logger] Cannot open log file {path}: {exc}{_RESET}", file=sys.stderr)
        return None

    _log_stream_var.set(stream)
    rule = "=" * 80
    stream.write(f"\n{rule}\n  apiusage {run_name}\n  Started: {now.isoformat()}\n{rule}\n")
    print(f"{_CYAN}ℹ [Logger] Writing logs to: {path}{_RESET}", file=sys.stderr)
    return path


def end_log_file() -> None:
    """Close the current run's log file, if any."""
    stream = _log_stream_var.get()
    if stream is None:
        return
    _log_stream_var.set(None)
    try:
        stream.close()
    except OSError as exc:
        print(f"{_YELLOW}⚠ [Logger] Failed to close log file: {exc}{_RESET}", file=sys.stderr)


# ============================================================================
# Formatting
# ============================================================================


def _timestamp() -> str:
    now = datetime.now(UTC)
    return f"{now:%H:%M:%S}.{now.microsecond // 1000:03d}"


def _format_duration(ms: float) -> str:
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60_000:
        return f"{ms / 1000:.2f}s"
    minutes, rest = divmod(ms, 60_000)
    return f"{int(minutes)}m {rest / 1000:.1f}s"


def _format_value(value: object) -> str:
    """Colour *value* by type; long strings and containers are summarised."""
    if value is None:
        return f"{_DIM}None{_RESET}"
    if isinstance(value, bool):
        return f"{_GREEN if value else _RED}{value}{_RESET}"
    if isinstance(value, (int, float)):
        return f"{_YELLOW}{value}{_RESET}"
    if isinstance(value, pathlib.PurePath):
        value = str(value)
    if isinstance(value, str):
        shown = value if len(value) <= 500 else value[:497] + "..."
        return f'{_GREEN}"{shown}"{_RESET}'
    if isinstance(value, (list, tuple, set)):
        return f"{_CYAN}[{len(value)} items]{_RESET}"
    if isinstance(value, dict):
        return f"{_CYAN}{{{len(value)} keys}}{_RESET}"
    return str(value)


# ============================================================================
# Logger
# ============================================================================


class Logger:
    """Logger bound to a context name shown in every line."""

    def __init__(self, context: str = "Pipeline") -> None:
        self._context = context

    def _emit(self, line: str) -> None:
        print(line, file=sys.stderr)
        stream = _log_stream_var.get()
        if stream is not None:
            stream.write(_ANSI_RE.sub("", line) + "\n")
            stream.flush()

    def _log(self, level: str, message: str, data: dict[str, object] | None = None) -> None:
        colour, symbol, severity = _LEVELS[level]
        if severity < _threshold():
            return
        line = (
            f"{_GRAY}[{_timestamp()}]{_RESET} {colour}{symbol}{_RESET} "
            f"{_BRIGHT}[{self._context}]{_RESET} {message}"
        )
        if data:
            line += " " + " ".join(f"{_DIM}{key}={_RESET}{_format_value(value)}" for key, value in data.items())
        self._emit(line)

    def info(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("info", message, data)

    def success(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("success", message, data)

    def warn(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("warn", message, data)

    def error(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("error", message, data)

    def debug(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("debug", message, data)

    def start_timer(self, label: str) -> None:
        """Start the timer *label* (scoped to this logger's context)."""
        _timers()[f"{self._context}:{label}"] = (time.monotonic() * 1000, _timestamp())
        self._log("timing", f"Starting: {label}")

    def end_timer(self, label: str, message: str | None = None) -> float:
        """Stop the timer *label*, log its duration and return it in ms."""
        entry = _timers().pop(f"{self._context}:{label}", None)
        if entry is None:
            self.warn(f'Timer "{label}" was not started')
            return 0.0
        started_ms, started_at = entry
        elapsed = time.monotonic() * 1000 - started_ms
        self._log(
            "timing",
            f"{message or f'Completed: {label}'} {_DIM}took{_RESET} "
            f"{_MAGENTA}{_format_duration(elapsed)}{_RESET} {_DIM}(started {started_at}){_RESET}",
        )
        return elapsed

    def section(self, title: str) -> None:
        """Print a banner for a major phase."""
        rule = f"{_BLUE}{'─' * 60}{_RESET}"
        for line in ("", rule, f"{_BLUE}{_BRIGHT}  {title}{_RESET}", rule, ""):
            self._emit(line)

    def subsection(self, title: str) -> None:
        self._emit(f"\n{_CYAN}  ▸ {title}{_RESET}")


def create_logger(context: str) -> Logger:
    """Create a logger for a specific module."""
    return Logger(context)
