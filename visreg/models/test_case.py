"""Test case data structures produced by discovery and consumed by capture."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Viewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    device_scale_factor: float = Field(default=1, gt=0)

    def label(self) -> str:
        if self.device_scale_factor != 1:
            return f"{self.width}x{self.height}@{self.device_scale_factor:g}x"
        return f"{self.width}x{self.height}"


class Interaction(BaseModel):
    type: str  # click, dblclick, hover, focus, blur, type, fill, clear, press,
    # select, check, uncheck, scroll_into_view, wait, wait_for_timeout,
    # wait_for_load_state
    selector: Optional[str] = None
    text: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str | list[str]] = None
    duration: Optional[int] = None  # ms, for wait_for_timeout
    state: Optional[str] = None
    timeout: Optional[int] = None  # ms


class TestCaseInstance(BaseModel):
    """A concrete, runnable (case, variant) pair."""

    case_id: str
    variant_id: str
    url: str
    title: str = ""
    kind: str = "unknown"
    screenshot_target: Optional[str] = None
    viewport: Optional[Viewport] = None
    browser: Optional[str] = None
    threshold: Optional[float] = Field(default=None, ge=0, le=1)
    interactions: list[Interaction] = Field(default_factory=list)
    elements_to_mask: list[str] = Field(default_factory=list)
    disable_css_injection: bool = False

    @property
    def id(self) -> str:
        return f"{self.case_id}-{self.variant_id}"


class ScreenshotOptions(BaseModel):
    """Arguments handed to ``BrowserAdapter.capture``."""

    id: str
    url: str
    screenshot_target: Optional[str] = None
    viewport: Optional[Viewport] = None
    disable_css_injection: bool = False
    interactions: list[Interaction] = Field(default_factory=list)
    elements_to_mask: list[str] = Field(default_factory=list)

    @classmethod
    def from_case(cls, case: TestCaseInstance) -> "ScreenshotOptions":
        return cls(
            id=case.id,
            url=case.url,
            screenshot_target=case.screenshot_target,
            viewport=case.viewport,
            disable_css_injection=case.disable_css_injection,
            interactions=case.interactions,
            elements_to_mask=case.elements_to_mask,
        )
