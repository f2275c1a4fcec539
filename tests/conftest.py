"""Shared fixtures for the test suite."""

from __future__ import annotations

import json
import pathlib
from collections.abc import Callable
from typing import Any

import pytest

from apiusage.models import trace

# Category indexes used by every synthetic trace.
OTHER = 0
JAVASCRIPT = 1
DOM = 2

CATEGORIES = [
    {"name": "Other", "color": "grey", "subcategories": ["Other"]},
    {"name": "JavaScript", "color": "yellow", "subcategories": ["Other"]},
    {"name": "DOM", "color": "blue", "subcategories": ["Other"]},
]


# ── Synthetic trace builder ─────────────────────────────────────


class ThreadBuilder:
    """Builds one thread's tables in the Gecko raw format.

    Stack 0 is always the ``(root)`` frame.
    """

    OTHER = OTHER
    JAVASCRIPT = JAVASCRIPT
    DOM = DOM

    def __init__(self, name: str = "GeckoMain") -> None:
        self.name = name
        self.strings: list[str] = []
        self.frames: list[list[Any]] = []
        self.stacks: list[list[Any]] = []
        self.samples: list[list[Any]] = []
        self.root = self.stack(None, "(root)", OTHER)

    def stack(
        self,
        parent: int | None,
        label: str,
        category: int | None,
        window: int | None = None,
    ) -> int:
        """Add a frame plus a stack node pointing at it; return the stack id."""
        self.strings.append(label)
        self.frames.append([len(self.strings) - 1, category, window])
        self.stacks.append([parent, len(self.frames) - 1])
        return len(self.stacks) - 1

    def js(self, parent: int, label: str, window: int | None = None) -> int:
        return self.stack(parent, label, JAVASCRIPT, window)

    def dom(self, parent: int, api: str) -> int:
        return self.stack(parent, f"(DOM) {api}", DOM)

    def sample(self, stack_id: int | None, times: int = 1) -> None:
        for _ in range(times):
            self.samples.append([stack_id, float(len(self.samples))])

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "stackTable": {"schema": {"prefix": 0, "frame": 1}, "data": self.stacks},
            "frameTable": {
                "schema": {"location": 0, "category": 1, "innerWindowID": 2},
                "data": self.frames,
            },
            "samples": {"schema": {"stack": 0, "time": 1}, "data": self.samples},
            "stringTable": self.strings,
        }


def page(window: int, url: str, embedder: int = 0) -> dict[str, Any]:
    return {
        "tabID": 1,
        "innerWindowID": window,
        "url": url,
        "embedderInnerWindowID": embedder,
        "isPrivateBrowsing": False,
    }


def trace_dict(
    threads: list[ThreadBuilder],
    pages: list[dict[str, Any]] | None,
) -> dict[str, Any]:
    """Build a single-process trace document."""
    process: dict[str, Any] = {"threads": [t.to_dict() for t in threads]}
    if pages is not None:
        process["pages"] = pages
    return {"meta": {"version": 27, "categories": CATEGORIES}, "processes": [process]}


@pytest.fixture()
def thread_builder() -> type[ThreadBuilder]:
    """The ``ThreadBuilder`` class."""
    return ThreadBuilder


@pytest.fixture()
def make_page() -> Callable[..., dict[str, Any]]:
    """Factory for page records."""
    return page


@pytest.fixture()
def make_trace() -> Callable[..., trace.TraceDocument]:
    """Factory for validated trace documents."""

    def _make(threads: list[ThreadBuilder], pages: list[dict[str, Any]] | None) -> trace.TraceDocument:
        return trace.TraceDocument.model_validate(trace_dict(threads, pages))

    return _make


@pytest.fixture()
def write_trace(tmp_path: pathlib.Path) -> Callable[..., pathlib.Path]:
    """Write a trace document to ``tmp_path/reports`` and return its path."""
    report_dir = tmp_path / "reports"
    report_dir.mkdir(exist_ok=True)

    def _write(name: str, threads: list[ThreadBuilder], pages: list[dict[str, Any]] | None) -> pathlib.Path:
        path = report_dir / name
        path.write_text(json.dumps(trace_dict(threads, pages)), encoding="utf-8")
        return path

    return _write


# ── Scenario traces ─────────────────────────────────────────────

TOP_URL = "https://site.test/"
FRAME_URL = "https://ads.test/frame"
INNER_URL = "https://tracker.test/inner"
SCRIPT_URL = "https://cdn.test/lib.js?v=3"


@pytest.fixture()
def nested_pages() -> list[dict[str, Any]]:
    """Top page (1) embedding an iframe (2) embedding another (3)."""
    return [page(1, TOP_URL), page(2, FRAME_URL, embedder=1), page(3, INNER_URL, embedder=2)]


@pytest.fixture()
def eval_thread() -> ThreadBuilder:
    """root → script (window 3) → eval → ``(DOM) localStorage.getItem``."""
    thread = ThreadBuilder()
    script = thread.js(thread.root, f"load ({SCRIPT_URL}:10:4)", window=3)
    evaluated = thread.js(script, "eval (self-hosted:5:7)", window=3)
    thread.sample(thread.dom(evaluated, "localStorage.getItem"))
    return thread
