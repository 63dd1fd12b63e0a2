"""Configuration models for visreg."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from visreg.constants import (
    DEFAULT_BROWSER,
    DEFAULT_CAPTURE_CONCURRENCY,
    DEFAULT_CAPTURE_TIMEOUT_MS,
    DEFAULT_COMPARE_CONCURRENCY,
    DEFAULT_COMPARISON_CORE,
    DEFAULT_DIFF_COLOR,
    DEFAULT_SCREENSHOT_DIR,
    DEFAULT_THRESHOLD,
)
from visreg.models.test_case import Viewport

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"^#?[0-9a-fA-F]{6}$")


class AdapterConfig(BaseModel):
    name: str
    options: dict[str, Any] = Field(default_factory=dict)


def _default_browser_adapter() -> AdapterConfig:
    return AdapterConfig(name="playwright")


class AdaptersConfig(BaseModel):
    browser: AdapterConfig = Field(default_factory=_default_browser_adapter)
    test_case: list[AdapterConfig] = Field(min_length=1)


class ComparisonConfig(BaseModel):
    core: str = DEFAULT_COMPARISON_CORE
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0, le=1)
    diff_color: str = DEFAULT_DIFF_COLOR

    @field_validator("diff_color")
    @classmethod
    def validate_hex_color(cls, v: str) -> str:
        if not HEX_COLOR_RE.match(v):
            raise ValueError(f"Invalid hex color: {v}")
        return v if v.startswith("#") else f"#{v}"


class ConcurrencyLimits(BaseModel):
    capture: Optional[int] = Field(default=None, ge=1)
    compare: Optional[int] = Field(default=None, ge=1)


class RuntimeConfig(BaseModel):
    # A single number applies to both phases
    max_concurrency: Optional[int | ConcurrencyLimits] = None
    capture_timeout_ms: int = Field(default=DEFAULT_CAPTURE_TIMEOUT_MS, gt=0)
    quiet: bool = False

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v):
        if isinstance(v, int) and v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v


class BrowserTarget(BaseModel):
    name: str
    options: Optional[dict[str, Any]] = None


class VisregConfig(BaseModel):
    adapters: AdaptersConfig
    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    screenshot_dir: str = DEFAULT_SCREENSHOT_DIR
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    viewport: dict[str, Viewport] = Field(default_factory=dict)

    # Case filters, forwarded to every test case adapter
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    def capture_concurrency(self) -> int:
        return self._concurrency_for("capture", DEFAULT_CAPTURE_CONCURRENCY)

    def compare_concurrency(self) -> int:
        return self._concurrency_for("compare", DEFAULT_COMPARE_CONCURRENCY)

    def _concurrency_for(self, phase: str, default: int) -> int:
        value = self.runtime.max_concurrency
        if isinstance(value, int):
            return max(1, value)
        if isinstance(value, ConcurrencyLimits):
            return max(1, getattr(value, phase) or default)
        return default

    def browser_targets(self) -> list[BrowserTarget]:
        """Parse the browser selection out of the browser adapter options.

        Accepts a single name, a list of names, or a list of
        ``{"name": ..., "options": {...}}`` entries.
        """
        raw = self.adapters.browser.options.get("browser")
        if not raw:
            return [BrowserTarget(name=DEFAULT_BROWSER)]
        entries = raw if isinstance(raw, list) else [raw]
        targets = []
        for entry in entries:
            if isinstance(entry, str):
                targets.append(BrowserTarget(name=entry))
            else:
                targets.append(BrowserTarget(**entry))
        return targets or [BrowserTarget(name=DEFAULT_BROWSER)]

    def with_filters(
        self, include: list[str] | None = None, exclude: list[str] | None = None,
    ) -> "VisregConfig":
        """Return a copy with CLI include/exclude patterns applied."""
        update: dict[str, Any] = {}
        if include:
            update["include"] = list(include)
        if exclude:
            update["exclude"] = list(exclude)
        return self.model_copy(update=update) if update else self

    def apply_env_overrides(self, environ: dict[str, str] | None = None) -> "VisregConfig":
        """Apply ``VISREG_*`` environment overrides in place and return self."""
        env = os.environ if environ is None else environ
        if env.get("VISREG_SCREENSHOT_DIR"):
            self.screenshot_dir = env["VISREG_SCREENSHOT_DIR"]
        overrides: dict[str, Any] = {}
        if env.get("VISREG_COMPARISON_CORE"):
            overrides["core"] = env["VISREG_COMPARISON_CORE"]
        raw_threshold = env.get("VISREG_COMPARISON_THRESHOLD")
        if raw_threshold:
            try:
                overrides["threshold"] = float(raw_threshold)
            except ValueError:
                logger.warning("Ignoring non-numeric VISREG_COMPARISON_THRESHOLD=%r",
                               raw_threshold)
        if env.get("VISREG_COMPARISON_DIFF_COLOR"):
            overrides["diff_color"] = env["VISREG_COMPARISON_DIFF_COLOR"]
        if overrides:
            self.comparison = ComparisonConfig(**{**self.comparison.model_dump(), **overrides})
        return self

    @classmethod
    def load(cls, path: str | Path) -> "VisregConfig":
        """Load config from a JSON file and apply environment overrides."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data).apply_env_overrides()

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(exclude_none=True), f, indent=2)
