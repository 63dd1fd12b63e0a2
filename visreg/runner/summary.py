"""Summary aggregator — merges capture and compare results into a RunOutcome."""

from __future__ import annotations

import logging
from typing import Optional

from visreg.constants import (
    REASON_MISSING_BASE,
    REASON_MISSING_CURRENT,
    REASON_PIXEL_DIFF,
)
from visreg.models.test_case import TestCaseInstance
from visreg.models.test_result import (
    CaptureResult,
    CompareResult,
    RunOutcome,
    TestCaseDetail,
    TestDurations,
)
from visreg.storage.fs_storage import snapshot_filename
from visreg.utils.timing import round_ms

logger = logging.getLogger(__name__)

REASON_MISSING_COMPARISON = "missing-comparison-result"
REASON_CAPTURE_NOT_RUN = "capture-not-run"


def _detail_base(case: TestCaseInstance, capture: Optional[CaptureResult]) -> dict:
    return {
        "id": case.id,
        "capture_filename": capture.capture_filename if capture else snapshot_filename(case.id),
        "capture_duration_ms": capture.capture_duration_ms if capture else 0.0,
        "title": case.title or None,
        "browser": case.browser,
        "viewport": case.viewport.label() if case.viewport else None,
    }


def _durations(
    capture_results: list[CaptureResult],
    compare_results: list[CompareResult],
    total_duration_ms: Optional[float],
) -> TestDurations:
    capture_total = sum(r.capture_duration_ms for r in capture_results)
    compare_total = sum(r.comparison_duration_ms for r in compare_results)
    return TestDurations(
        total_capture_duration_ms=round_ms(capture_total),
        total_comparison_duration_ms=round_ms(compare_total),
        total_duration_ms=round_ms(
            total_duration_ms if total_duration_ms is not None
            else capture_total + compare_total
        ),
    )


def summarize_test_mode(
    cases: list[TestCaseInstance],
    capture_results: list[CaptureResult],
    compare_results: list[CompareResult],
    total_duration_ms: Optional[float] = None,
) -> RunOutcome:
    """Build the test-mode outcome.

    Every variant lands in exactly one bucket. A variant whose capture failed
    is counted under ``capture_failures`` and never under a comparison
    reason, even though no current image exists for it.
    """
    captures = {r.id: r for r in capture_results}
    compares = {r.id: r for r in compare_results}

    counts = {
        "passed": 0,
        "failed_diffs": 0,
        "failed_missing_current": 0,
        "failed_missing_base": 0,
        "failed_errors": 0,
        "capture_failures": 0,
    }
    details: list[TestCaseDetail] = []

    for case in cases:
        capture = captures.get(case.id)
        base = _detail_base(case, capture)

        if capture is None or not capture.ok:
            counts["capture_failures"] += 1
            reason = capture.error if capture else REASON_CAPTURE_NOT_RUN
            logger.error("Capture failed: %s (%s)", case.id, reason)
            details.append(TestCaseDetail(
                **base,
                total_duration_ms=round_ms(base["capture_duration_ms"]),
                status="capture-failed",
                reason=reason,
            ))
            continue

        compare = compares.get(case.id)
        if compare is None:
            counts["failed_errors"] += 1
            logger.error("Failed: %s (%s)", case.id, REASON_MISSING_COMPARISON)
            details.append(TestCaseDetail(
                **base,
                total_duration_ms=round_ms(capture.capture_duration_ms),
                status="failed",
                reason=REASON_MISSING_COMPARISON,
            ))
            continue

        total_ms = round_ms(capture.capture_duration_ms + compare.comparison_duration_ms)
        if compare.match:
            counts["passed"] += 1
            logger.info("Passed: %s", case.id)
            details.append(TestCaseDetail(
                **base,
                comparison_duration_ms=compare.comparison_duration_ms,
                total_duration_ms=total_ms,
                status="passed",
            ))
            continue

        if compare.reason == REASON_PIXEL_DIFF:
            counts["failed_diffs"] += 1
        elif compare.reason == REASON_MISSING_CURRENT:
            counts["failed_missing_current"] += 1
        elif compare.reason == REASON_MISSING_BASE:
            counts["failed_missing_base"] += 1
        else:
            counts["failed_errors"] += 1

        if compare.diff_percentage is not None:
            logger.error("Failed: %s (%s, %.2f%%)", case.id, compare.reason,
                         compare.diff_percentage)
        else:
            logger.error("Failed: %s (%s)", case.id, compare.reason)
        details.append(TestCaseDetail(
            **base,
            comparison_duration_ms=compare.comparison_duration_ms,
            total_duration_ms=total_ms,
            status="failed",
            reason=compare.reason,
            diff_percentage=compare.diff_percentage,
        ))

    return RunOutcome(
        total=len(cases),
        test_cases=tuple(details),
        durations=_durations(capture_results, compare_results, total_duration_ms),
        **counts,
    )


def summarize_update_mode(
    cases: list[TestCaseInstance],
    capture_results: list[CaptureResult],
    total_duration_ms: Optional[float] = None,
) -> RunOutcome:
    """Build the update-mode outcome: a stored baseline counts as passed."""
    captures = {r.id: r for r in capture_results}
    passed = 0
    capture_failures = 0
    details: list[TestCaseDetail] = []

    for case in cases:
        capture = captures.get(case.id)
        base = _detail_base(case, capture)
        if capture is not None and capture.ok:
            passed += 1
            details.append(TestCaseDetail(
                **base,
                total_duration_ms=round_ms(capture.capture_duration_ms),
                status="passed",
            ))
        else:
            capture_failures += 1
            reason = capture.error if capture else REASON_CAPTURE_NOT_RUN
            logger.error("Baseline capture failed: %s (%s)", case.id, reason)
            details.append(TestCaseDetail(
                **base,
                total_duration_ms=round_ms(base["capture_duration_ms"]),
                status="capture-failed",
                reason=reason,
            ))

    logger.info("Updated %d/%d baseline(s)", passed, len(cases))
    return RunOutcome(
        total=len(cases),
        passed=passed,
        capture_failures=capture_failures,
        test_cases=tuple(details),
        durations=_durations(capture_results, [], total_duration_ms),
    )
