"""Capture executor — screenshots every variant through the concurrency pool."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Literal

from visreg.adapters.protocols import BrowserAdapter, StorageAdapter
from visreg.constants import DEFAULT_CAPTURE_TIMEOUT_MS, KIND_BASE, KIND_CURRENT
from visreg.errors import CaptureError, CaptureTimeoutError
from visreg.models.test_case import ScreenshotOptions, TestCaseInstance
from visreg.models.test_result import CaptureResult, ScreenshotResult
from visreg.runner.pool import ConcurrencyPool, TaskFailure
from visreg.storage.fs_storage import snapshot_filename
from visreg.utils.timing import elapsed_ms

logger = logging.getLogger(__name__)

CaptureMode = Literal["test", "update"]
GetBrowserAdapter = Callable[[str], Awaitable[BrowserAdapter]]


def _discard_outcome(task: asyncio.Future) -> None:
    # Abandoned captures may still finish or fail; keep asyncio from warning
    if not task.cancelled():
        task.exception()


async def capture_with_timeout(
    adapter: BrowserAdapter, options: ScreenshotOptions, timeout_ms: int,
) -> ScreenshotResult:
    """Race ``adapter.capture`` against ``timeout_ms``.

    On timeout the capture task is cancelled without waiting for it to
    unwind, so the caller's pool slot frees immediately. Whether the browser
    work actually stops depends on the adapter honouring cancellation.
    """
    task = asyncio.ensure_future(adapter.capture(options))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        task.add_done_callback(_discard_outcome)
        raise
    if task in done:
        return task.result()
    task.cancel()
    task.add_done_callback(_discard_outcome)
    raise CaptureTimeoutError(options.id, timeout_ms)


class CaptureExecutor:
    """Captures and persists screenshots with bounded concurrency.

    Each variant's bytes are written as soon as they arrive (``current`` in
    test mode, ``base`` in update mode) and then dropped, so memory stays
    flat no matter how many captures run at once.
    """

    def __init__(
        self,
        get_browser_adapter: GetBrowserAdapter,
        storage: StorageAdapter,
        mode: CaptureMode,
        max_concurrency: int,
        timeout_ms: int = DEFAULT_CAPTURE_TIMEOUT_MS,
    ):
        self.get_browser_adapter = get_browser_adapter
        self.storage = storage
        self.mode = mode
        self.kind = KIND_BASE if mode == "update" else KIND_CURRENT
        self.pool = ConcurrencyPool(max_concurrency)
        self.timeout_ms = timeout_ms

    async def execute(self, cases: list[TestCaseInstance]) -> list[CaptureResult]:
        logger.info("Capturing %d variant(s) with max concurrency %d",
                    len(cases), self.pool.concurrency)
        try:
            raw = await self.pool.run(cases, self._capture_one)
        except BaseException:
            await self._cleanup_temp_files()
            raise
        return [
            self._from_failure(r) if isinstance(r, TaskFailure) else r
            for r in raw
        ]

    async def _capture_one(self, case: TestCaseInstance, index: int) -> CaptureResult:
        capture_id = case.id
        filename = snapshot_filename(capture_id)
        logger.debug("Taking screenshot for: %s (%s)", capture_id, case.browser)
        start = time.perf_counter()

        try:
            if not case.browser:
                raise CaptureError(f"Variant {capture_id} has no browser assigned")
            adapter = await self.get_browser_adapter(case.browser)
            shot = await capture_with_timeout(
                adapter, ScreenshotOptions.from_case(case), self.timeout_ms,
            )
            meta = shot.meta
            await self.storage.write(self.kind, filename, shot.buffer)
            del shot
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error("Capture failed for %s: %s", capture_id, message)
            return CaptureResult(
                id=capture_id,
                error=message,
                capture_duration_ms=elapsed_ms(start),
                capture_filename=filename,
            )

        return CaptureResult(
            id=capture_id,
            result=meta,
            capture_duration_ms=elapsed_ms(start),
            capture_filename=filename,
        )

    @staticmethod
    def _from_failure(failure: TaskFailure) -> CaptureResult:
        case: TestCaseInstance = failure.item
        return CaptureResult(
            id=case.id,
            error=str(failure.error) or failure.error.__class__.__name__,
            capture_filename=snapshot_filename(case.id),
        )

    async def _cleanup_temp_files(self) -> None:
        cleanup = getattr(self.storage, "cleanup", None)
        if cleanup is None:
            return
        logger.info("Cleaning up unfinished screenshot writes after failure")
        try:
            await cleanup()
        except Exception as e:
            logger.warning("Temp file cleanup failed: %s", e)
