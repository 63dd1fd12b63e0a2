"""Browser adapter pool — one initialized adapter per browser name."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from visreg.adapters.protocols import BrowserAdapter

logger = logging.getLogger(__name__)

BrowserAdapterFactory = Callable[[], BrowserAdapter]


class BrowserAdapterPool:
    """Lazily creates, caches and disposes browser adapters.

    The first request for a browser name creates and initializes an adapter;
    later requests reuse it, so each browser family runs one process no
    matter how many cases target it.
    """

    def __init__(self, factory: BrowserAdapterFactory):
        self._factory = factory
        self._adapters: dict[str, BrowserAdapter] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, browser_name: str) -> bool:
        return browser_name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    async def get_adapter(
        self, browser_name: str, options: Optional[dict[str, Any]] = None,
    ) -> BrowserAdapter:
        adapter = self._adapters.get(browser_name)
        if adapter is not None:
            return adapter

        # Concurrent first requests for the same name must share one launch
        lock = self._locks.setdefault(browser_name, asyncio.Lock())
        async with lock:
            adapter = self._adapters.get(browser_name)
            if adapter is None:
                logger.debug("Launching browser adapter for %s", browser_name)
                adapter = self._factory()
                try:
                    await adapter.init(browser_name, options)
                except Exception:
                    await _dispose_quietly(adapter, browser_name)
                    raise
                self._adapters[browser_name] = adapter
        return adapter

    async def dispose_all(self) -> None:
        """Dispose every cached adapter in parallel; never raises."""
        if not self._adapters:
            return
        adapters = list(self._adapters.items())
        self._adapters.clear()
        self._locks.clear()
        logger.debug("Disposing %d browser adapter(s)", len(adapters))
        await asyncio.gather(*(_dispose_quietly(a, name) for name, a in adapters))


async def _dispose_quietly(adapter: BrowserAdapter, browser_name: str) -> None:
    try:
        await adapter.dispose()
    except Exception as e:
        logger.warning("Error disposing browser adapter %s: %s", browser_name, e)
