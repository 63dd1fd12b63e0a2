"""Adapter plugin registry — maps adapter names from config to factories."""

from __future__ import annotations

import logging
from typing import Any, Callable

from visreg.adapters.playwright_browser import PlaywrightBrowserAdapter
from visreg.adapters.protocols import BrowserAdapter, TestCaseAdapter
from visreg.adapters.url_cases import UrlTestCaseAdapter
from visreg.errors import AdapterNotFoundError
from visreg.models.config import AdapterConfig, VisregConfig

logger = logging.getLogger(__name__)

BrowserAdapterFactory = Callable[[dict[str, Any]], BrowserAdapter]
TestCaseAdapterFactory = Callable[[dict[str, Any]], TestCaseAdapter]

_BROWSER_ADAPTERS: dict[str, BrowserAdapterFactory] = {
    "playwright": PlaywrightBrowserAdapter,
}

_TEST_CASE_ADAPTERS: dict[str, TestCaseAdapterFactory] = {
    "url": UrlTestCaseAdapter,
}


def register_browser_adapter(name: str, factory: BrowserAdapterFactory) -> None:
    _BROWSER_ADAPTERS[name] = factory


def register_test_case_adapter(name: str, factory: TestCaseAdapterFactory) -> None:
    _TEST_CASE_ADAPTERS[name] = factory


def browser_adapter_names() -> list[str]:
    return sorted(_BROWSER_ADAPTERS)


def test_case_adapter_names() -> list[str]:
    return sorted(_TEST_CASE_ADAPTERS)


def get_browser_adapter_factory(name: str) -> BrowserAdapterFactory:
    try:
        return _BROWSER_ADAPTERS[name]
    except KeyError:
        raise AdapterNotFoundError("browser", name, browser_adapter_names()) from None


def get_test_case_adapter_factory(name: str) -> TestCaseAdapterFactory:
    try:
        return _TEST_CASE_ADAPTERS[name]
    except KeyError:
        raise AdapterNotFoundError("test case", name, test_case_adapter_names()) from None


def _test_case_options(adapter: AdapterConfig, config: VisregConfig) -> dict[str, Any]:
    options = dict(adapter.options)
    # Filters given on the command line win over per-adapter ones
    if config.include:
        options["include"] = list(config.include)
    if config.exclude:
        options["exclude"] = list(config.exclude)
    return options


def create_browser_adapter_factory(config: VisregConfig) -> Callable[[], BrowserAdapter]:
    """Resolve the configured browser adapter into a no-argument factory."""
    factory = get_browser_adapter_factory(config.adapters.browser.name)
    options = {k: v for k, v in config.adapters.browser.options.items() if k != "browser"}
    return lambda: factory(dict(options))


def create_test_case_adapters(config: VisregConfig) -> list[TestCaseAdapter]:
    """Instantiate every configured test case adapter, in configuration order."""
    adapters = []
    for adapter_config in config.adapters.test_case:
        factory = get_test_case_adapter_factory(adapter_config.name)
        adapter = factory(_test_case_options(adapter_config, config))
        logger.debug("Loaded test case adapter %s", adapter_config.name)
        adapters.append(adapter)
    return adapters
