"""Interaction runner — translates Interaction models to Playwright calls."""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import Page

from visreg.errors import CaptureError
from visreg.models.test_case import Interaction

logger = logging.getLogger(__name__)

DEFAULT_INTERACTION_TIMEOUT_MS = 5000
SETTLE_TIME_MS = 100

_SELECTOR_REQUIRED = {
    "click", "dblclick", "hover", "focus", "blur", "type", "fill", "clear",
    "select", "check", "uncheck", "scroll_into_view", "wait",
}


async def run_interaction(page: Page, interaction: Interaction) -> None:
    """Execute a single interaction on the Playwright page."""
    kind = interaction.type
    selector = interaction.selector
    timeout = interaction.timeout or DEFAULT_INTERACTION_TIMEOUT_MS

    if kind in _SELECTOR_REQUIRED and not selector:
        raise ValueError(f"{kind} interaction requires a selector")

    logger.debug("Running interaction: %s | selector=%s", kind, selector)

    match kind:
        case "click":
            await page.click(selector, timeout=timeout)
        case "dblclick":
            await page.dblclick(selector, timeout=timeout)
        case "hover":
            await page.hover(selector, timeout=timeout)
        case "focus":
            await page.focus(selector, timeout=timeout)
        case "blur":
            await page.locator(selector).blur(timeout=timeout)
        case "type":
            await page.locator(selector).press_sequentially(
                interaction.text or "", timeout=timeout,
            )
        case "fill":
            await page.fill(selector, interaction.text or _as_text(interaction.value),
                            timeout=timeout)
        case "clear":
            await page.locator(selector).clear(timeout=timeout)
        case "press":
            key = interaction.key or "Enter"
            if selector:
                await page.press(selector, key, timeout=timeout)
            else:
                await page.keyboard.press(key)
        case "select":
            value: Any = interaction.value if interaction.value is not None else ""
            await page.select_option(selector, value, timeout=timeout)
        case "check":
            await page.check(selector, timeout=timeout)
        case "uncheck":
            await page.uncheck(selector, timeout=timeout)
        case "scroll_into_view":
            await page.locator(selector).scroll_into_view_if_needed(timeout=timeout)
        case "wait":
            await page.wait_for_selector(selector, state=interaction.state or "visible",
                                         timeout=timeout)
        case "wait_for_timeout":
            await page.wait_for_timeout(interaction.duration or 0)
        case "wait_for_load_state":
            await page.wait_for_load_state(interaction.state or "load", timeout=timeout)
        case _:
            raise ValueError(f"Unknown interaction type: {kind}")


def _as_text(value: str | list[str] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return value[0] if value else ""
    return value


async def run_interactions(
    page: Page, interactions: list[Interaction], case_id: str,
) -> None:
    """Run ``interactions`` in order, then give the page a moment to settle.

    The first failing step aborts the sequence with a ``CaptureError``
    naming the step and the case.
    """
    if not interactions:
        return
    logger.debug("Executing %d interaction(s) for %s", len(interactions), case_id)
    for i, interaction in enumerate(interactions, start=1):
        try:
            await run_interaction(page, interaction)
        except Exception as e:
            raise CaptureError(
                f"Interaction {i} ({interaction.type}) failed for {case_id}: {e}"
            ) from e
    await page.wait_for_timeout(SETTLE_TIME_MS)
