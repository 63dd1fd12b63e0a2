"""Comparison orchestrator — runs captured variants against the configured engine."""

from __future__ import annotations

import logging
import time

from visreg.adapters.protocols import StorageAdapter
from visreg.comparison.registry import ComparisonEngineRegistry
from visreg.constants import REASON_ERROR, REASON_PIXEL_DIFF
from visreg.models.config import ComparisonConfig
from visreg.models.test_case import TestCaseInstance
from visreg.models.test_result import CaptureResult, CompareResult
from visreg.runner.pool import ConcurrencyPool, TaskFailure
from visreg.utils.timing import elapsed_ms

logger = logging.getLogger(__name__)


async def compare_captures(
    storage: StorageAdapter,
    registry: ComparisonEngineRegistry,
    comparison: ComparisonConfig,
    cases: list[TestCaseInstance],
    capture_results: list[CaptureResult],
    max_concurrency: int,
) -> list[CompareResult]:
    """Compare every successful capture against its baseline.

    Failed captures are skipped here; the summary reports them as
    ``capture-failed``. A case's own threshold overrides the global one.
    The engine is resolved before any work starts, so an unknown ``core``
    is a configuration error rather than a per-case failure.
    """
    engine = registry.get(comparison.core)
    cases_by_id = {c.id: c for c in cases}
    to_compare = [r for r in capture_results if r.ok]
    skipped = len(capture_results) - len(to_compare)
    if skipped:
        logger.info("Skipping comparison for %d failed capture(s)", skipped)

    async def _compare_one(capture: CaptureResult, index: int) -> CompareResult:
        filename = capture.capture_filename
        case = cases_by_id.get(capture.id)
        threshold = (
            case.threshold
            if case is not None and case.threshold is not None
            else comparison.threshold
        )
        start = time.perf_counter()
        try:
            result = await engine.compare(
                storage, filename, threshold, diff_color=comparison.diff_color,
            )
        except Exception as e:
            logger.error("Comparison failed for %s: %s", capture.id, e)
            return CompareResult(
                id=capture.id,
                filename=filename,
                match=False,
                reason=REASON_ERROR,
                comparison_duration_ms=elapsed_ms(start),
                error=str(e) or e.__class__.__name__,
            )

        if result.match:
            logger.debug("Match: %s", capture.id)
        else:
            logger.debug("Mismatch: %s (%s)", capture.id, result.reason)
        return CompareResult(
            id=capture.id,
            filename=filename,
            match=result.match,
            reason="" if result.match else (result.reason or REASON_ERROR),
            diff_percentage=(
                result.diff_percentage if result.reason == REASON_PIXEL_DIFF else None
            ),
            comparison_duration_ms=elapsed_ms(start),
        )

    pool = ConcurrencyPool(max_concurrency)
    logger.info("Comparing %d capture(s) with '%s' (max concurrency %d)",
                len(to_compare), engine.name, max_concurrency)
    raw = await pool.run(to_compare, _compare_one)

    results = []
    for item in raw:
        if isinstance(item, TaskFailure):
            capture: CaptureResult = item.item
            results.append(CompareResult(
                id=capture.id,
                filename=capture.capture_filename,
                match=False,
                reason=REASON_ERROR,
                error=str(item.error),
            ))
        else:
            results.append(item)
    return results
