"""Pipeline orchestrator — coordinates discovery, capture, compare and summary stages."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Literal, Optional

from visreg.adapters.protocols import BrowserAdapter, StorageAdapter, TestCaseAdapter
from visreg.adapters.registry import (
    create_browser_adapter_factory,
    create_test_case_adapters,
)
from visreg.comparison.comparer import compare_captures
from visreg.comparison.registry import ComparisonEngineRegistry, create_default_registry
from visreg.constants import EXIT_OK, EXIT_TESTS_FAILED
from visreg.models.config import BrowserTarget, VisregConfig
from visreg.models.test_case import TestCaseInstance
from visreg.models.test_result import ListResult, RunOutcome, RunResult
from visreg.runner.browser_pool import BrowserAdapterPool
from visreg.runner.capture import CaptureExecutor
from visreg.runner.discovery import discover_cases_from_all_adapters
from visreg.runner.summary import summarize_test_mode, summarize_update_mode
from visreg.storage.fs_storage import FsStorageAdapter
from visreg.utils.timing import elapsed_ms

logger = logging.getLogger(__name__)

RunMode = Literal["test", "update"]


class Pipeline:
    """Owns the collaborators of a single run and guarantees their release.

    Collaborators default to the ones named in ``config``; tests inject
    their own.
    """

    def __init__(
        self,
        config: VisregConfig,
        registry: Optional[ComparisonEngineRegistry] = None,
        storage: Optional[StorageAdapter] = None,
        browser_factory: Optional[Callable[[], BrowserAdapter]] = None,
        test_case_adapters: Optional[list[TestCaseAdapter]] = None,
    ):
        self.config = config
        self.registry = registry or create_default_registry()
        self.storage = storage or FsStorageAdapter(config.screenshot_dir)
        self.targets: list[BrowserTarget] = config.browser_targets()
        self._target_options = {t.name: t.options for t in self.targets}
        self.test_case_adapters = (
            test_case_adapters if test_case_adapters is not None
            else create_test_case_adapters(config)
        )
        self.browser_pool = BrowserAdapterPool(
            browser_factory or create_browser_adapter_factory(config)
        )

    async def get_browser_adapter(self, browser_name: str) -> BrowserAdapter:
        return await self.browser_pool.get_adapter(
            browser_name, self._target_options.get(browser_name),
        )

    async def discover(self) -> list[TestCaseInstance]:
        logger.info("--- Discovery ---")
        discovery_browser = await self.get_browser_adapter(self.targets[0].name)
        cases = await discover_cases_from_all_adapters(
            self.test_case_adapters,
            discovery_browser,
            self.config.viewport,
            self.targets,
        )
        if not cases:
            logger.warning("No test cases discovered")
        logger.info("Discovered %d variant(s) across %d browser(s)",
                    len(cases), len(self.targets))
        return cases

    async def run(self, mode: RunMode) -> RunOutcome:
        start = time.perf_counter()
        logger.info("=== Starting %s run ===", mode)
        try:
            ensure = getattr(self.storage, "ensure_directories", None)
            if ensure is not None:
                ensure()

            cases = await self.discover()

            logger.info("--- Capture ---")
            executor = CaptureExecutor(
                self.get_browser_adapter,
                self.storage,
                mode,
                self.config.capture_concurrency(),
                self.config.runtime.capture_timeout_ms,
            )
            captures = await executor.execute(cases)

            if mode == "update":
                outcome = summarize_update_mode(cases, captures, elapsed_ms(start))
            else:
                logger.info("--- Compare ---")
                compares = await compare_captures(
                    self.storage,
                    self.registry,
                    self.config.comparison,
                    cases,
                    captures,
                    self.config.compare_concurrency(),
                )
                outcome = summarize_test_mode(cases, captures, compares, elapsed_ms(start))
        finally:
            await self.close()

        logger.info("=== %s run complete: %d/%d passed in %.1fs ===",
                    mode.capitalize(), outcome.passed, outcome.total,
                    outcome.durations.total_duration_ms / 1000)
        return outcome

    async def list_cases(self) -> list[TestCaseInstance]:
        try:
            return await self.discover()
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop test case adapters, dispose browsers, drop unfinished temp files."""
        for adapter in self.test_case_adapters:
            stop = getattr(adapter, "stop", None)
            if stop is None:
                continue
            try:
                await stop()
            except Exception as e:
                logger.warning("Error stopping test case adapter %s: %s", adapter.name, e)

        await self.browser_pool.dispose_all()

        cleanup = getattr(self.storage, "cleanup", None)
        if cleanup is not None:
            try:
                await cleanup()
            except Exception as e:
                logger.warning("Storage cleanup failed: %s", e)


async def run_visual_tests(config: VisregConfig, **collaborators) -> RunResult:
    """Capture every variant into ``current`` and compare it against ``base``."""
    outcome = await Pipeline(config, **collaborators).run("test")
    success = outcome.passed == outcome.total and outcome.capture_failures == 0
    return RunResult(
        success=success,
        outcome=outcome,
        exit_code=EXIT_OK if success else EXIT_TESTS_FAILED,
    )


async def update_baselines(config: VisregConfig, **collaborators) -> RunOutcome:
    """Capture every variant straight into ``base``."""
    return await Pipeline(config, **collaborators).run("update")


async def list_test_cases(config: VisregConfig, **collaborators) -> ListResult:
    """Discover variants without capturing anything."""
    pipeline = Pipeline(config, **collaborators)
    cases = await pipeline.list_cases()
    return ListResult(
        test_cases=cases,
        total=len(cases),
        browsers=[t.name for t in pipeline.targets],
        viewports=sorted(config.viewport) or ["default"],
    )


class Orchestrator:
    """Synchronous entry points used by the CLI."""

    def __init__(self, config: VisregConfig):
        self.config = config

    def run_tests(self) -> RunResult:
        return asyncio.run(run_visual_tests(self.config))

    def update_baselines(self) -> RunOutcome:
        return asyncio.run(update_baselines(self.config))

    def list_cases(self) -> ListResult:
        return asyncio.run(list_test_cases(self.config))
