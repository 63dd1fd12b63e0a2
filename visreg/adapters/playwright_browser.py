"""Playwright browser adapter — launches a browser and captures element screenshots."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional
from urllib.parse import urljoin

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from visreg.adapters.interactions import run_interactions
from visreg.errors import CaptureError
from visreg.models.test_case import ScreenshotOptions
from visreg.models.test_result import ScreenshotMeta, ScreenshotResult
from visreg.utils.timing import round_ms

logger = logging.getLogger(__name__)

DEFAULT_PAGE_TIMEOUT_MS = 30000
SCREENSHOT_ELEMENT_TIMEOUT_MS = 2000
NETWORK_IDLE_FALLBACK_DELAY_MS = 1000
MASK_OVERLAY_COLOR = "#ffA500"

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

NO_ANIMATIONS_CSS = """
*, *::before, *::after {
    animation-duration: 0s !important;
    animation-delay: 0s !important;
    transition-duration: 0s !important;
    transition-delay: 0s !important;
    caret-color: transparent !important;
    scroll-behavior: auto !important;
}
"""


def build_elements_mask_css(selectors: list[str], overlay: str = MASK_OVERLAY_COLOR) -> str:
    """CSS that paints a solid overlay over every element matching ``selectors``.

    The overlay is an ``::after`` pseudo-element so page layout is untouched.
    """
    parts = []
    for selector in (s.strip() for s in selectors):
        if not selector:
            continue
        parts.append(
            f"{selector}{{position:relative !important;}}"
            f"{selector}::after{{content:'';position:absolute;inset:0;"
            f"background:{overlay} !important;opacity:1;pointer-events:none;}}"
        )
    return "\n".join(parts)


def resolve_screenshot_target(selector: Optional[str]) -> str:
    if selector == "story-root":
        return "#storybook-root"
    return selector or "body"


def build_absolute_url(url: str, base_url: Optional[str] = None) -> str:
    url = url.strip()
    return urljoin(base_url, url) if base_url else url


class PlaywrightBrowserAdapter:
    """Drives one Playwright browser family.

    Options (all optional)::

        headless: bool = True
        channel: str
        navigation: {base_url, wait_until="load", timeout_ms=30000}
        context: {color_scheme="light", reduced_motion="reduce", storage_state_path}
        screenshot: {wait_for_element_timeout_ms=2000}
        disable_animations: bool = True
        inject_css: str
    """

    name = "playwright"

    def __init__(self, options: Optional[dict[str, Any]] = None):
        self.options: dict[str, Any] = dict(options or {})
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self.browser_name: Optional[str] = None

    @property
    def _navigation(self) -> dict[str, Any]:
        return self.options.get("navigation") or {}

    @property
    def timeout_ms(self) -> int:
        return int(self._navigation.get("timeout_ms") or DEFAULT_PAGE_TIMEOUT_MS)

    async def init(self, browser: str, options: Optional[dict[str, Any]] = None) -> None:
        """Start Playwright and launch ``browser``. Safe to call more than once."""
        if options:
            self.options = {**self.options, **options}
        if self._browser is not None:
            return
        if browser not in SUPPORTED_BROWSERS:
            raise ValueError(
                f"Unsupported browser '{browser}'. "
                f"Supported: {', '.join(SUPPORTED_BROWSERS)}"
            )

        self.browser_name = browser
        self._playwright = await async_playwright().start()
        launch_kwargs: dict[str, Any] = {"headless": self.options.get("headless", True)}
        if self.options.get("channel"):
            launch_kwargs["channel"] = self.options["channel"]
        try:
            browser_type = getattr(self._playwright, browser)
            self._browser = await browser_type.launch(**launch_kwargs)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("Launched %s (headless=%s)", browser, launch_kwargs["headless"])

    def _ensure_initialized(self) -> Browser:
        if self._browser is None:
            raise CaptureError("Playwright adapter not initialized")
        return self._browser

    async def open_page(self, url: str) -> Page:
        """Open a page in the shared browser and navigate to ``url``."""
        browser = self._ensure_initialized()
        page = await browser.new_page()
        page.set_default_timeout(self.timeout_ms)
        try:
            await self._navigate(page, build_absolute_url(url, self._navigation.get("base_url")))
        except Exception:
            await page.close()
            raise
        return page

    async def _new_context(self, options: ScreenshotOptions) -> BrowserContext:
        browser = self._ensure_initialized()
        context_opts = self.options.get("context") or {}
        kwargs: dict[str, Any] = {
            "color_scheme": context_opts.get("color_scheme", "light"),
            "reduced_motion": context_opts.get("reduced_motion", "reduce"),
        }
        if context_opts.get("storage_state_path"):
            kwargs["storage_state"] = context_opts["storage_state_path"]
        if options.viewport is not None:
            kwargs["viewport"] = {
                "width": options.viewport.width,
                "height": options.viewport.height,
            }
            kwargs["device_scale_factor"] = options.viewport.device_scale_factor
        return await browser.new_context(**kwargs)

    async def _navigate(self, page: Page, url: str) -> None:
        wait_until = self._navigation.get("wait_until", "load")
        logger.debug("Navigating to %s (wait_until=%s)", url, wait_until)
        await page.goto(url, wait_until=wait_until, timeout=self.timeout_ms)
        if wait_until == "networkidle":
            await self._wait_for_network_idle(page)

    async def _wait_for_network_idle(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=self.timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("Network idle timeout, continuing")
            await page.wait_for_timeout(
                min(NETWORK_IDLE_FALLBACK_DELAY_MS, self.timeout_ms // 10)
            )

    async def capture(self, options: ScreenshotOptions) -> ScreenshotResult:
        """Capture one element screenshot in an isolated browser context."""
        start = time.perf_counter()
        context = await self._new_context(options)
        try:
            page = await context.new_page()
            page.set_default_timeout(self.timeout_ms)

            inject_styles = not options.disable_css_injection
            if inject_styles and self.options.get("disable_animations", True):
                await page.emulate_media(reduced_motion="reduce")

            await self._navigate(
                page, build_absolute_url(options.url, self._navigation.get("base_url")),
            )
            await run_interactions(page, options.interactions, options.id)

            if inject_styles:
                if self.options.get("disable_animations", True):
                    await page.add_style_tag(content=NO_ANIMATIONS_CSS)
                if self.options.get("inject_css"):
                    await page.add_style_tag(content=self.options["inject_css"])

            # Masks apply even when CSS injection is disabled for the case
            mask_css = build_elements_mask_css(options.elements_to_mask)
            if mask_css:
                await page.add_style_tag(content=mask_css)

            buffer = await self._screenshot_element(page, options)
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning("Failed to close browser context for %s: %s", options.id, e)

        return ScreenshotResult(
            buffer=buffer,
            meta=ScreenshotMeta(
                id=options.id,
                elapsed_ms=round_ms((time.perf_counter() - start) * 1000),
            ),
        )

    async def _screenshot_element(self, page: Page, options: ScreenshotOptions) -> bytes:
        selector = resolve_screenshot_target(options.screenshot_target)
        element_timeout = (self.options.get("screenshot") or {}).get(
            "wait_for_element_timeout_ms", SCREENSHOT_ELEMENT_TIMEOUT_MS,
        )
        try:
            await page.wait_for_selector(selector, state="attached", timeout=element_timeout)
        except PlaywrightTimeoutError as e:
            raise CaptureError(
                f"Screenshot target not found with selector {selector} for case {options.id}"
            ) from e
        return await page.locator(selector).first.screenshot(type="png")

    async def dispose(self) -> None:
        """Close the browser and stop Playwright. Safe to call more than once."""
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
        if browser is not None:
            logger.debug("Closed %s", self.browser_name)
