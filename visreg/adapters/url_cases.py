"""URL test case adapter — turns a list of configured URLs into test cases."""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from visreg.errors import ConfigError
from visreg.models.test_case import Interaction, TestCaseInstance, Viewport

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT_KEY = "default"
FALLBACK_VIEWPORT = Viewport(width=1920, height=1080)


class UrlEntry(BaseModel):
    id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    title: Optional[str] = None
    screenshot_target: Optional[str] = None
    viewport: Optional[Viewport] = None
    threshold: Optional[float] = Field(default=None, ge=0, le=1)
    disable_css_injection: bool = False
    interactions: list[Interaction] = Field(default_factory=list)
    elements_to_mask: list[str] = Field(default_factory=list)


class UrlAdapterOptions(BaseModel):
    urls: list[UrlEntry] = Field(default_factory=list)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    return [value] if isinstance(value, str) else list(value)


def matches_filters(case_id: str, include: list[str], exclude: list[str]) -> bool:
    """True if ``case_id`` matches an include pattern (or there are none)
    and matches no exclude pattern."""
    if include and not any(fnmatchcase(case_id, p) for p in include):
        return False
    return not any(fnmatchcase(case_id, p) for p in exclude)


class UrlTestCaseAdapter:
    """Test case adapter for absolute URLs; needs no server and no page."""

    name = "url"

    def __init__(self, options: Optional[dict[str, Any]] = None):
        raw = dict(options or {})
        raw["include"] = _as_list(raw.get("include"))
        raw["exclude"] = _as_list(raw.get("exclude"))
        try:
            self.options = UrlAdapterOptions(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid url adapter options: {e}") from e

        self.urls = [
            u for u in self.options.urls
            if matches_filters(u.id, self.options.include, self.options.exclude)
        ]
        if not self.urls:
            logger.warning("No URLs match the include/exclude patterns")

    async def start(self) -> dict[str, str]:
        if not self.urls:
            return {}
        return {"initial_page_url": self.urls[0].url}

    async def list_cases(
        self, page: Any = None, viewport: Optional[dict[str, Viewport]] = None,
    ) -> list[TestCaseInstance]:
        """Expand every URL across the sorted viewport keys."""
        viewport_map = viewport or {}
        keys = sorted(viewport_map) or [DEFAULT_VIEWPORT_KEY]

        cases = []
        for entry in self.urls:
            for key in keys:
                cases.append(TestCaseInstance(
                    case_id=entry.id,
                    variant_id=key,
                    url=entry.url,
                    title=entry.title or entry.id,
                    kind="url",
                    screenshot_target=entry.screenshot_target,
                    viewport=entry.viewport or viewport_map.get(key) or FALLBACK_VIEWPORT,
                    threshold=entry.threshold,
                    interactions=entry.interactions,
                    elements_to_mask=entry.elements_to_mask,
                    disable_css_injection=entry.disable_css_injection,
                ))
        logger.debug("url adapter listed %d case(s)", len(cases))
        return cases

    async def stop(self) -> None:
        pass
