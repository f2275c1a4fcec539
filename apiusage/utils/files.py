"""
Async file-system helpers.

Used by the profiler to wait for a trace file to appear and be
closed, and by the pipeline to list, size, read and delete traces.
"""

from __future__ import annotations

import asyncio
import pathlib

import aiofiles
import aiofiles.os

from apiusage.utils import logger

log = logger.create_logger("Files")

TRACE_SUFFIX = ".json"


async def get_items_in_folder(directory: pathlib.Path) -> set[str]:
    """Return the names of the entries in *directory*."""
    return set(await aiofiles.os.listdir(directory))


async def list_trace_files(directory: pathlib.Path, suffix: str = TRACE_SUFFIX) -> list[pathlib.Path]:
    """Return trace files in *directory*, sorted by name."""
    if not await aiofiles.os.path.isdir(directory):
        return []
    names = await get_items_in_folder(directory)
    paths = [directory / name for name in sorted(names) if name.endswith(suffix)]
    return [path for path in paths if await aiofiles.os.path.isfile(path)]


async def file_size(path: pathlib.Path) -> int:
    stat = await aiofiles.os.stat(path)
    return stat.st_size


async def read_bytes(path: pathlib.Path) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


async def remove_file(path: pathlib.Path) -> None:
    await aiofiles.os.remove(path)


async def wait_until_new_file(
    directory: pathlib.Path,
    old_files: set[str],
    poll_interval: float = 0.1,
) -> str:
    """Poll *directory* until exactly one entry not in *old_files* exists."""
    while True:
        new_files = await get_items_in_folder(directory) - old_files
        if len(new_files) == 1:
            return next(iter(new_files))
        log.debug("Waiting for a new file", {"directory": str(directory), "newFiles": len(new_files)})
        await asyncio.sleep(poll_interval)


async def wait_until_file_closed(path: pathlib.Path, poll_interval: float = 1.0) -> None:
    """Wait until no process holds *path* open (checked with ``lsof``)."""
    while True:
        try:
            proc = await asyncio.create_subprocess_exec(
                "lsof",
                "-t",
                str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError:
            log.warn("lsof not available, not waiting for file to close", {"path": str(path)})
            return
        # lsof exits with status 1 when no process has the file open
        if await proc.wait() != 0:
            return
        log.info("Waiting for file to be closed", {"path": str(path)})
        await asyncio.sleep(poll_interval)
