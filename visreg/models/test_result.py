"""Result data structures produced by capture, comparison and summary."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from visreg.models.test_case import TestCaseInstance


class ScreenshotMeta(BaseModel):
    id: str
    elapsed_ms: float = 0.0
    viewport_key: Optional[str] = None


class ScreenshotResult(BaseModel):
    buffer: bytes = b""
    meta: ScreenshotMeta


class CaptureResult(BaseModel):
    """Outcome of capturing one variant. Exactly one of result/error is set."""

    id: str
    result: Optional[ScreenshotMeta] = None
    error: Optional[str] = None
    capture_duration_ms: float = 0.0
    capture_filename: str

    @property
    def ok(self) -> bool:
        return self.error is None


class EngineResult(BaseModel):
    """What a comparison engine answers for a single file."""
    match: bool
    reason: str = ""  # "", pixel-diff, missing-current, missing-base, error
    diff_percentage: Optional[float] = None


class CompareResult(BaseModel):
    id: str  # capture id, without extension
    filename: str
    match: bool
    reason: str = ""
    diff_percentage: Optional[float] = None
    comparison_duration_ms: float = 0.0
    error: Optional[str] = None


CaseStatus = Literal["passed", "failed", "capture-failed"]


class TestCaseDetail(BaseModel, frozen=True):
    id: str
    capture_filename: str
    capture_duration_ms: float = 0.0
    comparison_duration_ms: Optional[float] = None
    total_duration_ms: float = 0.0
    status: CaseStatus
    reason: Optional[str] = None
    diff_percentage: Optional[float] = None
    title: Optional[str] = None
    browser: Optional[str] = None
    viewport: Optional[str] = None


class TestDurations(BaseModel, frozen=True):
    total_capture_duration_ms: float = 0.0
    total_comparison_duration_ms: float = 0.0
    total_duration_ms: float = 0.0


class RunOutcome(BaseModel, frozen=True):
    total: int = 0
    passed: int = 0
    failed_diffs: int = 0
    failed_missing_current: int = 0
    failed_missing_base: int = 0
    failed_errors: int = 0
    capture_failures: int = 0
    test_cases: tuple[TestCaseDetail, ...] = ()
    durations: TestDurations = Field(default_factory=TestDurations)

    @property
    def failed(self) -> int:
        return self.total - self.passed


class RunResult(BaseModel):
    success: bool
    outcome: RunOutcome
    exit_code: int


class ListResult(BaseModel):
    test_cases: list[TestCaseInstance] = Field(default_factory=list)
    total: int = 0
    browsers: list[str] = Field(default_factory=list)
    viewports: list[str] = Field(default_factory=list)
