"""Tests for apiusage.browser.profiler.

Playwright objects are replaced with mocks; the profiler signals
are patched out so no browser process is needed.
"""

from __future__ import annotations

import asyncio
import pathlib
import signal
from unittest import mock

import pytest
from playwright import async_api

from apiusage.browser.profiler import Profiler
from apiusage.models import jobs
from apiusage.utils import files


def _browser(events: list[str], *, goto_error: Exception | None = None) -> tuple[mock.Mock, mock.Mock, mock.Mock]:
    async def goto(url: str) -> None:
        events.append("goto")
        if goto_error is not None:
            raise goto_error

    page = mock.Mock()
    page.goto = mock.AsyncMock(side_effect=goto)
    page.wait_for_load_state = mock.AsyncMock()
    page.wait_for_selector = mock.AsyncMock()
    page.wait_for_function = mock.AsyncMock()

    context = mock.Mock()
    context.new_page = mock.AsyncMock(return_value=page)
    context.close = mock.AsyncMock()

    browser = mock.Mock()
    browser.new_context = mock.AsyncMock(return_value=context)
    browser.is_connected = mock.Mock(return_value=True)
    browser.close = mock.AsyncMock()
    return browser, context, page


def _profiler(browser: mock.Mock, report_dir: pathlib.Path) -> Profiler:
    playwright = mock.Mock()
    playwright.stop = mock.AsyncMock()
    return Profiler(playwright, browser, report_dir, pid=4321)


def _job(start: str = "beforeload", condition: dict | None = None) -> jobs.ProfileJob:
    return jobs.ProfileJob.model_validate(
        {
            "name": "site",
            "url": "https://site.test/",
            "startProfiler": start,
            "condition": condition or {"kind": "delay", "waitFor": 0},
        }
    )


# ── Capture ordering ────────────────────────────────────────────


class TestProcessJob:
    """Capture start relative to navigation, and cleanup."""

    def _run(self, profiler: Profiler, job: jobs.ProfileJob, events: list[str], trace: pathlib.Path):
        async def stop() -> pathlib.Path:
            events.append("stop")
            return trace

        with (
            mock.patch.object(Profiler, "_start", side_effect=lambda: events.append("start")),
            mock.patch.object(Profiler, "_stop", new=mock.AsyncMock(side_effect=stop)),
        ):
            return asyncio.run(profiler.process_job(job))

    def test_before_load(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, context, _ = _browser(events)
        result = self._run(_profiler(browser, tmp_path), _job("beforeload"), events, tmp_path / "t.json")
        assert events == ["start", "goto", "stop"]
        assert result == tmp_path / "t.json"
        context.close.assert_awaited_once()

    def test_after_load(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, _, _ = _browser(events)
        self._run(_profiler(browser, tmp_path), _job("afterload"), events, tmp_path / "t.json")
        assert events == ["goto", "start", "stop"]

    def test_navigation_failure_waits_for_idle(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, _, page = _browser(events, goto_error=async_api.Error("NS_BINDING_ABORTED"))
        result = self._run(_profiler(browser, tmp_path), _job(), events, tmp_path / "t.json")
        page.wait_for_load_state.assert_awaited_once_with("networkidle")
        assert result == tmp_path / "t.json"

    def test_selector_condition(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, _, page = _browser(events)
        job = _job(condition={"kind": "selector", "waitForSelector": "#feed"})
        self._run(_profiler(browser, tmp_path), job, events, tmp_path / "t.json")
        page.wait_for_selector.assert_awaited_once_with("#feed")

    def test_failed_condition_still_stops(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, _, page = _browser(events)
        page.wait_for_function.side_effect = async_api.Error("Timeout 30000ms exceeded")
        job = _job(condition={"kind": "function", "waitForFunction": "window.ready"})
        self._run(_profiler(browser, tmp_path), job, events, tmp_path / "t.json")
        assert events[-1] == "stop"

    def test_context_closed_when_stop_fails(self, tmp_path: pathlib.Path) -> None:
        events: list[str] = []
        browser, context, _ = _browser(events)
        profiler = _profiler(browser, tmp_path)
        with (
            mock.patch.object(Profiler, "_start"),
            mock.patch.object(Profiler, "_stop", new=mock.AsyncMock(side_effect=TimeoutError)),
        ):
            with pytest.raises(TimeoutError):
                asyncio.run(profiler.process_job(_job()))
        context.close.assert_awaited_once()


class TestProcessJobs:
    def test_timeout_skips_job(self, tmp_path: pathlib.Path) -> None:
        browser, _, _ = _browser([])
        profiler = _profiler(browser, tmp_path)
        stop = mock.AsyncMock(side_effect=[TimeoutError, tmp_path / "second.json"])
        with mock.patch.object(Profiler, "_start"), mock.patch.object(Profiler, "_stop", new=stop):
            result = asyncio.run(profiler.process_jobs([_job(), _job()]))
        assert result == [tmp_path / "second.json"]

    def test_disconnected_browser(self, tmp_path: pathlib.Path) -> None:
        browser, _, _ = _browser([])
        browser.is_connected.return_value = False
        with pytest.raises(RuntimeError, match="not connected"):
            asyncio.run(_profiler(browser, tmp_path).process_jobs([_job()]))


# ── Signals ─────────────────────────────────────────────────────


class TestSignals:
    def test_start_sends_sigusr1(self, tmp_path: pathlib.Path) -> None:
        profiler = _profiler(_browser([])[0], tmp_path)
        with mock.patch("os.kill") as kill:
            profiler._start()
        kill.assert_called_once_with(4321, signal.SIGUSR1)

    def test_stop_waits_for_new_closed_file(self, tmp_path: pathlib.Path) -> None:
        profiler = _profiler(_browser([])[0], tmp_path)
        closed = mock.AsyncMock()
        with (
            mock.patch("os.kill") as kill,
            mock.patch.object(files, "get_items_in_folder", mock.AsyncMock(return_value={"old.json"})),
            mock.patch.object(files, "wait_until_new_file", mock.AsyncMock(return_value="trace.json")),
            mock.patch.object(files, "wait_until_file_closed", closed),
        ):
            result = asyncio.run(profiler._stop())
        kill.assert_called_once_with(4321, signal.SIGUSR2)
        closed.assert_awaited_once_with(tmp_path / "trace.json")
        assert result == tmp_path / "trace.json"


class TestClose:
    def test_close_stops_browser_and_playwright(self, tmp_path: pathlib.Path) -> None:
        browser, _, _ = _browser([])
        playwright = mock.Mock()
        playwright.stop = mock.AsyncMock()
        profiler = Profiler(playwright, browser, tmp_path, pid=1)

        asyncio.run(profiler.close())
        asyncio.run(profiler.close())

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
