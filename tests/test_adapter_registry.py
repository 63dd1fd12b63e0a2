"""Tests for the adapter plugin registry."""

import pytest

from conftest import FakeBrowserAdapter, FakeTestCaseAdapter
from visreg.adapters import registry
from visreg.adapters.playwright_browser import PlaywrightBrowserAdapter
from visreg.adapters.url_cases import UrlTestCaseAdapter
from visreg.errors import AdapterNotFoundError, ConfigError
from visreg.models.config import AdapterConfig, AdaptersConfig, VisregConfig


@pytest.fixture
def isolated_registry(monkeypatch):
    monkeypatch.setattr(registry, "_BROWSER_ADAPTERS", dict(registry._BROWSER_ADAPTERS))
    monkeypatch.setattr(registry, "_TEST_CASE_ADAPTERS", dict(registry._TEST_CASE_ADAPTERS))


class TestAdapterRegistry:
    """Tests for name -> factory resolution."""

    def test_builtins_registered(self):
        assert "playwright" in registry.browser_adapter_names()
        assert "url" in registry.test_case_adapter_names()

    def test_unknown_browser_adapter(self):
        with pytest.raises(AdapterNotFoundError, match="Unknown browser adapter 'selenium'"):
            registry.get_browser_adapter_factory("selenium")

    def test_unknown_test_case_adapter_is_config_error(self):
        with pytest.raises(ConfigError, match="Available: url"):
            registry.get_test_case_adapter_factory("storybook")

    def test_register_replaces_existing(self, isolated_registry):
        registry.register_browser_adapter("playwright", lambda options: FakeBrowserAdapter())
        factory = registry.get_browser_adapter_factory("playwright")
        assert isinstance(factory({}), FakeBrowserAdapter)

    def test_browser_factory_drops_browser_selection(self, visreg_config):
        create = registry.create_browser_adapter_factory(visreg_config)

        adapter = create()

        assert isinstance(adapter, PlaywrightBrowserAdapter)
        assert "browser" not in adapter.options

    def test_test_case_adapters_created_in_order(self, isolated_registry):
        registry.register_test_case_adapter(
            "fake", lambda options: FakeTestCaseAdapter(options["label"], []),
        )
        config = VisregConfig(adapters=AdaptersConfig(test_case=[
            AdapterConfig(name="fake", options={"label": "first"}),
            AdapterConfig(name="url", options={"urls": []}),
            AdapterConfig(name="fake", options={"label": "second"}),
        ]))

        adapters = registry.create_test_case_adapters(config)

        assert adapters[0].name == "first"
        assert isinstance(adapters[1], UrlTestCaseAdapter)
        assert adapters[2].name == "second"

    def test_cli_filters_override_adapter_filters(self, visreg_config):
        config = visreg_config.model_copy(update={
            "adapters": AdaptersConfig(test_case=[AdapterConfig(name="url", options={
                "urls": [{"id": "home", "url": "https://a.test"},
                         {"id": "about", "url": "https://a.test/about"}],
                "include": ["home"],
            })]),
        }).with_filters(include=["about"])

        adapter = registry.create_test_case_adapters(config)[0]

        assert [u.id for u in adapter.urls] == ["about"]
