"""
Browser automation for trace capture.

Drives Firefox through Playwright and controls the Gecko profiler
out of band: SIGUSR1 to the browser process starts capture, SIGUSR2
stops it and makes the browser write the trace into ``MOZ_UPLOAD_DIR``
(the report directory).  A trace is reported once exactly one new
file has appeared there and no process holds it open.
"""

from __future__ import annotations

import asyncio
import os
import pathlib
import signal

from playwright import async_api

from apiusage.config import Settings
from apiusage.models import jobs
from apiusage.utils import files, logger
from apiusage.utils import url as url_mod

log = logger.create_logger("Profiler")

# Maximum time to wait for the browser to write a trace after SIGUSR2.
STOP_TIMEOUT_SECONDS = 300

# Command-line flag Playwright passes to the Firefox it launches.
_PLAYWRIGHT_FIREFOX_FLAG = "juggler-pipe"


async def _find_browser_pid() -> int:
    """Find the Firefox process Playwright launched most recently."""
    proc = await asyncio.create_subprocess_exec(
        "pgrep",
        "-n",
        "-f",
        _PLAYWRIGHT_FIREFOX_FLAG,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    if proc.returncode != 0 or not stdout.strip():
        raise RuntimeError("Failed to get browser pid")
    return int(stdout.split()[0])


class Profiler:
    """
    One Firefox instance that turns page-load jobs into trace files.
    """

    def __init__(
        self,
        playwright: async_api.Playwright,
        browser: async_api.Browser,
        report_dir: pathlib.Path,
        pid: int,
    ) -> None:
        self._playwright: async_api.Playwright | None = playwright
        self._browser: async_api.Browser | None = browser
        self._report_dir = report_dir
        self._pid = pid

    # ==========================================================================
    # Browser Lifecycle
    # ==========================================================================

    @classmethod
    async def create(
        cls,
        settings: Settings,
        firefox_prefs: dict[str, str | int | float | bool] | None = None,
    ) -> Profiler:
        """Launch Firefox with its profiler upload directory set to the report dir."""
        settings.report_dir.mkdir(parents=True, exist_ok=True)
        log.info(
            "Launching browser",
            {"firefoxPath": settings.firefox_path, "headless": settings.headless},
        )

        launch_kwargs: dict[str, object] = {
            "headless": settings.headless,
            "env": {**os.environ, "MOZ_UPLOAD_DIR": str(settings.report_dir)},
            "firefox_user_prefs": dict(firefox_prefs or {}),
        }
        if settings.firefox_path:
            launch_kwargs["executable_path"] = settings.firefox_path

        pw = await async_api.async_playwright().start()
        try:
            br = await pw.firefox.launch(**launch_kwargs)  # type: ignore[arg-type]
            pid = await _find_browser_pid()
        except Exception:
            await pw.stop()
            raise

        log.debug("Browser launched", {"pid": pid})
        return cls(pw, br, settings.report_dir, pid)

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser:
            try:
                await self._browser.close()
            except async_api.Error as exc:
                log.debug("Browser close error (non-fatal)", {"error": str(exc)})
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except async_api.Error as exc:
                log.debug("Playwright stop error (non-fatal)", {"error": str(exc)})
            self._playwright = None
        log.debug("Browser closed")

    # ==========================================================================
    # Trace Capture
    # ==========================================================================

    def _start(self) -> None:
        os.kill(self._pid, signal.SIGUSR1)
        log.info("Profiler started")

    async def _stop(self) -> pathlib.Path:
        old_files = await files.get_items_in_folder(self._report_dir)
        os.kill(self._pid, signal.SIGUSR2)

        async with asyncio.timeout(STOP_TIMEOUT_SECONDS):
            new_file = await files.wait_until_new_file(self._report_dir, old_files)
            trace_path = self._report_dir / new_file
            await files.wait_until_file_closed(trace_path)

        log.info("Profile saved", {"path": str(trace_path)})
        return trace_path

    # ==========================================================================
    # Jobs
    # ==========================================================================

    @staticmethod
    async def _navigate(page: async_api.Page, url: str) -> None:
        """Load *url*; failures are logged and followed by a network-idle wait."""
        log.info("Navigating to page", {"hostname": url_mod.extract_domain(url)})
        try:
            await page.goto(url)
        except async_api.Error as error:
            # Documents that change location mid-load reject goto.
            log.warn("Failed to load page", {"url": url, "error": str(error)})
            try:
                await page.wait_for_load_state("networkidle")
            except async_api.Error as idle_error:
                log.warn("Failed to wait for network idle", {"error": str(idle_error)})

    @staticmethod
    async def _wait_for_condition(page: async_api.Page, condition: jobs.CompletionCondition) -> None:
        try:
            if isinstance(condition, jobs.DelayCondition):
                await asyncio.sleep(condition.wait_for / 1000)
            elif isinstance(condition, jobs.SelectorCondition):
                await page.wait_for_selector(condition.wait_for_selector)
            elif isinstance(condition, jobs.FunctionCondition):
                await page.wait_for_function(condition.wait_for_function)
        except async_api.Error as error:
            log.warn(
                "Completion condition failed, stopping capture anyway",
                {"kind": condition.kind, "error": str(error)},
            )

    async def process_job(self, job: jobs.ProfileJob) -> pathlib.Path:
        """Visit one page while capturing, and return the trace path."""
        if not self._browser:
            raise RuntimeError("No browser session active")

        log.subsection(job.name)
        context = await self._browser.new_context()
        try:
            page = await context.new_page()

            if job.start_profiler == "beforeload":
                self._start()

            await self._navigate(page, job.url)

            if job.start_profiler == "afterload":
                self._start()

            await self._wait_for_condition(page, job.condition)
            return await self._stop()
        finally:
            try:
                await context.close()
            except async_api.Error as exc:
                log.debug("Context close error (non-fatal)", {"error": str(exc)})

    async def process_jobs(self, job_list: list[jobs.ProfileJob]) -> list[pathlib.Path]:
        """Run *job_list* in order; return the traces that were written."""
        if not self._browser or not self._browser.is_connected():
            raise RuntimeError("Browser is not connected")

        trace_paths: list[pathlib.Path] = []
        for job in job_list:
            try:
                trace_paths.append(await self.process_job(job))
            except TimeoutError:
                log.error("Timed out waiting for trace", {"job": job.name})
        return trace_paths
