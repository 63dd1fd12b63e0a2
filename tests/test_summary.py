"""Tests for run outcome aggregation."""

import pytest
from pydantic import ValidationError

from conftest import make_case
from visreg.models.test_case import Viewport
from visreg.models.test_result import CaptureResult, CompareResult, ScreenshotMeta
from visreg.runner.summary import summarize_test_mode, summarize_update_mode


def _ok(case, duration=10.0):
    return CaptureResult(
        id=case.id, result=ScreenshotMeta(id=case.id),
        capture_duration_ms=duration, capture_filename=f"{case.id}.png",
    )


def _failed(case, error="boom"):
    return CaptureResult(
        id=case.id, error=error, capture_duration_ms=5.0, capture_filename=f"{case.id}.png",
    )


def _compare(case, match=True, reason="", diff=None, duration=2.0):
    return CompareResult(
        id=case.id, filename=f"{case.id}.png", match=match, reason=reason,
        diff_percentage=diff, comparison_duration_ms=duration,
    )


class TestSummarizeTestMode:
    """Tests for summarize_test_mode."""

    def test_capture_failure_and_pixel_diff(self):
        a, b = make_case("a"), make_case("b")

        outcome = summarize_test_mode(
            [a, b],
            [_ok(a), _failed(b)],
            [_compare(a, match=False, reason="pixel-diff", diff=5.0)],
        )

        assert outcome.total == 2
        assert outcome.passed == 0
        assert outcome.failed_diffs == 1
        assert outcome.capture_failures == 1
        assert outcome.failed_missing_current == 0
        assert outcome.failed == 2

    def test_capture_failure_never_counted_as_missing_current(self):
        a = make_case("a")

        outcome = summarize_test_mode([a], [_failed(a)], [])

        assert outcome.capture_failures == 1
        assert outcome.failed_missing_current == 0
        detail = outcome.test_cases[0]
        assert detail.status == "capture-failed"
        assert detail.reason == "boom"
        assert detail.comparison_duration_ms is None

    def test_each_reason_has_its_own_bucket(self):
        cases = [make_case(n) for n in ("ok", "diff", "cur", "base", "err")]
        ok, diff, cur, base, err = cases

        outcome = summarize_test_mode(
            cases,
            [_ok(c) for c in cases],
            [
                _compare(ok),
                _compare(diff, match=False, reason="pixel-diff", diff=1.5),
                _compare(cur, match=False, reason="missing-current"),
                _compare(base, match=False, reason="missing-base"),
                _compare(err, match=False, reason="error"),
            ],
        )

        assert (outcome.passed, outcome.failed_diffs, outcome.failed_missing_current,
                outcome.failed_missing_base, outcome.failed_errors) == (1, 1, 1, 1, 1)

    def test_missing_compare_result_is_an_error(self):
        a = make_case("a")

        outcome = summarize_test_mode([a], [_ok(a)], [])

        assert outcome.failed_errors == 1
        assert outcome.test_cases[0].reason == "missing-comparison-result"

    def test_details_carry_case_metadata(self):
        case = make_case("home", "desktop-chromium", title="Home", browser="chromium",
                         viewport=Viewport(width=375, height=667, device_scale_factor=2))

        outcome = summarize_test_mode(
            [case], [_ok(case, duration=12.5)], [_compare(case, duration=3.25)],
        )

        detail = outcome.test_cases[0]
        assert detail.status == "passed"
        assert detail.browser == "chromium"
        assert detail.viewport == "375x667@2x"
        assert detail.title == "Home"
        assert detail.capture_filename == "home-desktop-chromium.png"
        assert detail.total_duration_ms == 15.75

    def test_durations_summed(self):
        a, b = make_case("a"), make_case("b")

        outcome = summarize_test_mode(
            [a, b], [_ok(a, 10.0), _ok(b, 20.0)],
            [_compare(a, duration=1.0), _compare(b, duration=2.0)],
            total_duration_ms=100.0,
        )

        assert outcome.durations.total_capture_duration_ms == 30.0
        assert outcome.durations.total_comparison_duration_ms == 3.0
        assert outcome.durations.total_duration_ms == 100.0

    def test_details_follow_case_order(self):
        cases = [make_case("b"), make_case("a")]
        outcome = summarize_test_mode(cases, [_ok(c) for c in cases],
                                      [_compare(c) for c in reversed(cases)])
        assert [d.id for d in outcome.test_cases] == ["b-default", "a-default"]

    def test_outcome_is_immutable(self):
        outcome = summarize_test_mode([], [], [])
        with pytest.raises(ValidationError):
            outcome.passed = 5

    def test_nested_details_and_durations_are_immutable(self):
        a = make_case("a")
        outcome = summarize_test_mode([a], [_ok(a)], [_compare(a)])

        with pytest.raises(ValidationError):
            outcome.durations.total_duration_ms = 123456.0
        with pytest.raises(ValidationError):
            outcome.test_cases[0].status = "failed"

        assert outcome.durations.total_duration_ms == 12.0
        assert outcome.test_cases[0].status == "passed"
        assert outcome.passed == 1


class TestSummarizeUpdateMode:
    """Tests for summarize_update_mode."""

    def test_stored_baselines_count_as_passed(self):
        a, b = make_case("a"), make_case("b")

        outcome = summarize_update_mode([a, b], [_ok(a), _failed(b, "timeout")])

        assert outcome.total == 2
        assert outcome.passed == 1
        assert outcome.capture_failures == 1
        assert outcome.failed_diffs == 0
        assert [d.status for d in outcome.test_cases] == ["passed", "capture-failed"]
        assert outcome.test_cases[1].reason == "timeout"
