"""
Unit tests for the adapter registry
"""
import pytest

from src.cadharvest.scrapers.errors import UnknownSourceError
from src.cadharvest.scrapers.rate_limiter import RateLimiter
from src.cadharvest.scrapers.registry import AdapterRegistry, default_registry
from src.cadharvest.scrapers.sources.hays import HaysCADAdapter
from src.cadharvest.scrapers.sources.travis import TravisCADAdapter


class TestAdapterRegistry:
    """Tests for AdapterRegistry"""

    def test_default_sources(self):
        registry = default_registry()
        assert registry.list_sources() == ["hayscad", "traviscad", "williamsoncad"]

    def test_case_insensitive(self):
        registry = default_registry()
        assert "HaysCAD" in registry
        assert isinstance(registry.create("HAYSCAD"), HaysCADAdapter)

    def test_options_passed_to_constructor(self):
        limiter = RateLimiter()
        adapter = default_registry().create("traviscad", rate_limiter=limiter, base_url="https://example.test/")
        assert isinstance(adapter, TravisCADAdapter)
        assert adapter.rate_limiter is limiter
        assert adapter.base_url == "https://example.test"
        assert adapter.domain == "example.test"

    def test_unknown_source_lists_available(self):
        with pytest.raises(UnknownSourceError) as exc_info:
            default_registry().create("bexarcad")

        error = exc_info.value
        assert isinstance(error, ValueError)
        assert error.available == ["hayscad", "traviscad", "williamsoncad"]
        assert "hayscad, traviscad, williamsoncad" in str(error)

    def test_register_at_runtime(self):
        registry = AdapterRegistry()
        registry.register("Hays-Mirror", lambda **options: HaysCADAdapter(base_url="https://mirror.test", **options))
        assert registry.list_sources() == ["hays-mirror"]
        assert registry.create("hays-mirror").base_url == "https://mirror.test"

    def test_rejects_non_adapter_class(self):
        with pytest.raises(TypeError):
            AdapterRegistry().register("bad", dict)

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            AdapterRegistry().register("bad", "HaysCADAdapter")

    def test_factory_must_return_adapter(self):
        registry = AdapterRegistry()
        registry.register("bad", lambda **options: object())
        with pytest.raises(TypeError):
            registry.create("bad")
