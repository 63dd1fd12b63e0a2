"""Pytest configuration and shared fixtures."""

import asyncio
import io
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image
from playwright.async_api import Page

from visreg.models.config import AdapterConfig, AdaptersConfig, VisregConfig
from visreg.models.test_case import ScreenshotOptions, TestCaseInstance, Viewport
from visreg.models.test_result import ScreenshotMeta, ScreenshotResult
from visreg.storage.fs_storage import FsStorageAdapter


# ============================================================================
# Image helpers
# ============================================================================


def make_png(
    width: int = 8,
    height: int = 8,
    color: tuple[int, int, int, int] = (255, 255, 255, 255),
    changed: Optional[list[tuple[int, int]]] = None,
    changed_color: tuple[int, int, int, int] = (0, 0, 0, 255),
) -> bytes:
    """Build a PNG filled with ``color``, with ``changed`` pixels recoloured."""
    img = Image.new("RGBA", (width, height), color)
    for xy in changed or []:
        img.putpixel(xy, changed_color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ============================================================================
# Fakes
# ============================================================================


class FakeBrowserAdapter:
    """In-memory browser adapter that records calls and concurrency."""

    name = "fake"

    def __init__(
        self,
        png: Optional[bytes] = None,
        delays_ms: Optional[dict[str, float]] = None,
        failures: Optional[dict[str, Exception]] = None,
    ):
        self.png = png if png is not None else make_png()
        self.delays_ms = delays_ms or {}
        self.failures = failures or {}
        self.init_calls: list[tuple[str, Any]] = []
        self.captured: list[str] = []
        self.opened: list[str] = []
        self.pages: list[AsyncMock] = []
        self.disposed = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def init(self, browser: str, options: Optional[dict[str, Any]] = None) -> None:
        self.init_calls.append((browser, options))

    async def open_page(self, url: str) -> AsyncMock:
        self.opened.append(url)
        page = AsyncMock()
        self.pages.append(page)
        return page

    async def capture(self, options: ScreenshotOptions) -> ScreenshotResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays_ms.get(options.id, 0)
            if delay:
                await asyncio.sleep(delay / 1000)
            else:
                await asyncio.sleep(0)
            if options.id in self.failures:
                raise self.failures[options.id]
            self.captured.append(options.id)
            return ScreenshotResult(buffer=self.png, meta=ScreenshotMeta(id=options.id))
        finally:
            self.in_flight -= 1

    async def dispose(self) -> None:
        self.disposed += 1


class FakeTestCaseAdapter:
    """Test case adapter returning a fixed list of cases."""

    def __init__(
        self,
        name: str,
        cases: list[TestCaseInstance],
        start_info: Optional[dict[str, str]] = None,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.cases = cases
        self.start_info = (
            start_info if start_info is not None
            else {"initial_page_url": "https://example.com"}
        )
        self.error = error
        self.started = 0
        self.stopped = 0
        self.list_calls: list[dict] = []

    async def start(self) -> dict[str, str]:
        self.started += 1
        return self.start_info

    async def list_cases(self, page: Any = None, viewport: Any = None) -> list[TestCaseInstance]:
        self.list_calls.append({"page": page, "viewport": viewport})
        if self.error:
            raise self.error
        return list(self.cases)

    async def stop(self) -> None:
        self.stopped += 1


def make_case(case_id: str, variant_id: str = "default", **kwargs) -> TestCaseInstance:
    kwargs.setdefault("url", f"https://example.com/{case_id}")
    return TestCaseInstance(case_id=case_id, variant_id=variant_id, **kwargs)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def viewport() -> Viewport:
    """Create a desktop viewport."""
    return Viewport(width=1280, height=720)


@pytest.fixture
def test_case_instance(viewport: Viewport) -> TestCaseInstance:
    """Create an expanded test case variant."""
    return TestCaseInstance(
        case_id="home",
        variant_id="desktop-chromium",
        url="https://example.com/",
        title="Home",
        kind="url",
        viewport=viewport,
        browser="chromium",
    )


@pytest.fixture
def visreg_config(tmp_path: Path) -> VisregConfig:
    """Create a config pointing its screenshots at a temporary directory."""
    return VisregConfig(
        adapters=AdaptersConfig(
            browser=AdapterConfig(name="playwright", options={"browser": "chromium"}),
            test_case=[AdapterConfig(name="url", options={
                "urls": [{"id": "home", "url": "https://example.com/"}],
            })],
        ),
        screenshot_dir=str(tmp_path / "shots"),
        viewport={"desktop": Viewport(width=1280, height=720)},
    )


@pytest.fixture
def temp_config_file(visreg_config: VisregConfig, tmp_path: Path) -> Path:
    """Write the config to a temporary JSON file."""
    config_path = tmp_path / "visreg.config.json"
    visreg_config.save(config_path)
    return config_path


@pytest.fixture
def storage(tmp_path: Path) -> FsStorageAdapter:
    """Create a filesystem storage adapter under tmp_path."""
    adapter = FsStorageAdapter(tmp_path / "shots")
    adapter.ensure_directories()
    return adapter


@pytest.fixture
def fake_browser() -> FakeBrowserAdapter:
    return FakeBrowserAdapter()


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.url = "https://example.com"
    page.keyboard = AsyncMock()
    locator = AsyncMock()
    page.locator = MagicMock(return_value=locator)
    return page
