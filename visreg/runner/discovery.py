"""Test case discovery — enumerate, expand across browsers, prefix, sort."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from visreg.adapters.protocols import BrowserAdapter, TestCaseAdapter
from visreg.errors import DiscoveryError
from visreg.models.config import BrowserTarget
from visreg.models.test_case import TestCaseInstance, Viewport

logger = logging.getLogger(__name__)


async def start_adapter_and_resolve_page_url(adapter: TestCaseAdapter) -> str:
    """Start the adapter and return the URL discovery should open.

    ``initial_page_url`` wins over ``base_url``; an adapter offering neither
    cannot be discovered.
    """
    start = getattr(adapter, "start", None)
    info = (await start() if start else None) or {}
    page_url = info.get("initial_page_url") or info.get("base_url")
    if not page_url:
        raise DiscoveryError(
            f"Test case adapter '{adapter.name}' must provide either "
            "base_url or initial_page_url"
        )
    return page_url


def sort_cases_stable(cases: Iterable[TestCaseInstance]) -> list[TestCaseInstance]:
    """Sort by (case_id, variant_id) so run output is reproducible."""
    return sorted(cases, key=lambda c: (c.case_id, c.variant_id))


def expand_cases_for_browsers(
    cases: Iterable[TestCaseInstance], browsers: list[BrowserTarget],
) -> list[TestCaseInstance]:
    """Clone every case once per browser target, suffixing the variant id."""
    expanded = []
    for case in cases:
        for browser in browsers:
            expanded.append(case.model_copy(update={
                "variant_id": f"{case.variant_id}-{browser.name}",
                "browser": browser.name,
            }))
    return expanded


def prefix_case_ids(cases: Iterable[TestCaseInstance], prefix: str) -> list[TestCaseInstance]:
    return [c.model_copy(update={"case_id": f"{prefix}-{c.case_id}"}) for c in cases]


def dedupe_cases(cases: Iterable[TestCaseInstance]) -> list[TestCaseInstance]:
    """Keep the first instance of every (case_id, variant_id) pair."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for case in cases:
        key = (case.case_id, case.variant_id)
        if key in seen:
            logger.warning("Duplicate test case %s dropped", case.id)
            continue
        seen.add(key)
        unique.append(case)
    return unique


async def _close_page(page: Any) -> None:
    close = getattr(page, "close", None)
    if close is None:
        return
    try:
        await close()
    except Exception as e:
        logger.warning("Failed to close discovery page: %s", e)


async def discover_from_adapter(
    adapter: TestCaseAdapter,
    browser_adapter: BrowserAdapter,
    viewport: Optional[dict[str, Viewport]],
) -> list[TestCaseInstance]:
    """Run one adapter's discovery on a freshly opened page."""
    page_url = await start_adapter_and_resolve_page_url(adapter)
    logger.debug("Opening %s for discovery via '%s'", page_url, adapter.name)
    page = await browser_adapter.open_page(page_url)
    try:
        return list(await adapter.list_cases(page, viewport=viewport or {}))
    finally:
        await _close_page(page)


async def discover_cases_from_all_adapters(
    adapters: list[TestCaseAdapter],
    browser_adapter: BrowserAdapter,
    viewport: Optional[dict[str, Viewport]],
    browsers: list[BrowserTarget],
) -> list[TestCaseInstance]:
    """Discover and expand cases from every adapter, in configuration order.

    One adapter failing is logged and skipped; the others still contribute.
    With more than one adapter, case ids are prefixed with the adapter name.
    """
    prefix_ids = len(adapters) > 1
    all_cases: list[TestCaseInstance] = []

    for adapter in adapters:
        try:
            discovered = await discover_from_adapter(adapter, browser_adapter, viewport)
        except Exception as e:
            logger.warning("Error discovering cases from adapter %s: %s", adapter.name, e)
            continue

        expanded = expand_cases_for_browsers(discovered, browsers)
        if prefix_ids:
            expanded = prefix_case_ids(expanded, adapter.name)
        logger.info("Adapter %s: %d case(s), %d variant(s)",
                    adapter.name, len(discovered), len(expanded))
        all_cases.extend(expanded)

    return sort_cases_stable(dedupe_cases(all_cases))
