"""
Adapter Registry

Maps source identifiers to adapter constructors. Identifiers are
case-insensitive; new sources can be registered at runtime.
"""
import threading
from typing import Callable, Dict, List, Union

from src.cadharvest.scrapers.base import SourceAdapter
from src.cadharvest.scrapers.errors import UnknownSourceError
from src.cadharvest.scrapers.sources.hays import HaysCADAdapter
from src.cadharvest.scrapers.sources.travis import TravisCADAdapter
from src.cadharvest.scrapers.sources.williamson import WilliamsonCADAdapter
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

AdapterConstructor = Union[type, Callable[..., SourceAdapter]]


class AdapterRegistry:
    """Source identifier -> adapter constructor."""

    def __init__(self):
        self._constructors: Dict[str, AdapterConstructor] = {}
        self._lock = threading.Lock()

    def register(self, source_id: str, constructor: AdapterConstructor) -> None:
        """
        Register (or replace) the constructor for a source.

        Raises:
            TypeError: If constructor is a class that is not a SourceAdapter,
                or not callable at all
        """
        if isinstance(constructor, type) and not issubclass(constructor, SourceAdapter):
            raise TypeError(f"{constructor.__name__} is not a SourceAdapter subclass")
        if not callable(constructor):
            raise TypeError("Adapter constructor must be callable")

        key = source_id.strip().lower()
        with self._lock:
            replaced = key in self._constructors
            self._constructors[key] = constructor
        logger.info("source_registered", source=key, replaced=replaced)

    def create(self, source_id: str, **options) -> SourceAdapter:
        """
        Build an adapter for source_id.

        Args:
            source_id: Registered identifier (any case)
            **options: Passed to the constructor (fetcher, rate_limiter, ...)

        Raises:
            UnknownSourceError: If source_id is not registered
            TypeError: If a factory callable returns something other than a
                SourceAdapter
        """
        key = source_id.strip().lower()
        with self._lock:
            constructor = self._constructors.get(key)
        if constructor is None:
            raise UnknownSourceError(source_id, self.list_sources())

        adapter = constructor(**options)
        if not isinstance(adapter, SourceAdapter):
            raise TypeError(f"Constructor for '{key}' returned {type(adapter).__name__}, not a SourceAdapter")
        return adapter

    def list_sources(self) -> List[str]:
        with self._lock:
            return sorted(self._constructors)

    def __contains__(self, source_id: str) -> bool:
        with self._lock:
            return source_id.strip().lower() in self._constructors


def default_registry() -> AdapterRegistry:
    """Registry with the Hays, Travis and Williamson adapters."""
    registry = AdapterRegistry()
    registry.register(HaysCADAdapter.source_id, HaysCADAdapter)
    registry.register(TravisCADAdapter.source_id, TravisCADAdapter)
    registry.register(WilliamsonCADAdapter.source_id, WilliamsonCADAdapter)
    return registry
