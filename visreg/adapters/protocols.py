"""Capability interfaces the pipeline consumes from pluggable adapters."""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from visreg.models.test_case import ScreenshotOptions, TestCaseInstance, Viewport
from visreg.models.test_result import EngineResult, ScreenshotResult


@runtime_checkable
class BrowserAdapter(Protocol):
    """Drives one browser family: open pages, capture screenshots."""

    name: str

    async def init(self, browser: str, options: Optional[dict[str, Any]] = None) -> None: ...
    async def open_page(self, url: str) -> Any: ...
    async def capture(self, options: ScreenshotOptions) -> ScreenshotResult: ...
    async def dispose(self) -> None: ...


@runtime_checkable
class TestCaseAdapter(Protocol):
    """Enumerates test cases. ``start``/``stop`` are optional."""

    name: str

    async def list_cases(
        self, page: Any = None, viewport: Optional[dict[str, Viewport]] = None,
    ) -> list[TestCaseInstance]: ...


@runtime_checkable
class StorageAdapter(Protocol):
    """Stores screenshot bytes keyed by (kind, filename). ``cleanup`` is optional."""

    async def write(self, kind: str, filename: str, data: bytes) -> str: ...
    async def read(self, kind: str, filename: str) -> bytes: ...
    async def get_readable_path(self, kind: str, filename: str) -> str: ...
    async def exists(self, kind: str, filename: str) -> bool: ...
    async def list(self, kind: str) -> list[str]: ...


@runtime_checkable
class ComparisonEngine(Protocol):
    name: str

    async def compare(
        self, storage: StorageAdapter, filename: str,
        threshold: float, diff_color: Optional[str] = None,
    ) -> EngineResult: ...
