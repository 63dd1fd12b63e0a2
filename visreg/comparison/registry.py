"""Comparison engine registry — name -> engine lookup."""

from __future__ import annotations

import logging

from visreg.adapters.protocols import ComparisonEngine
from visreg.errors import ComparisonError

logger = logging.getLogger(__name__)


class ComparisonEngineRegistry:
    """A plain name -> engine table. Registering a name again replaces it."""

    def __init__(self, engines: list[ComparisonEngine] | None = None):
        self._engines: dict[str, ComparisonEngine] = {}
        for engine in engines or []:
            self.register(engine)

    def register(self, engine: ComparisonEngine) -> None:
        if engine.name in self._engines:
            logger.debug("Replacing comparison engine '%s'", engine.name)
        self._engines[engine.name] = engine

    def get(self, name: str) -> ComparisonEngine:
        try:
            return self._engines[name]
        except KeyError:
            raise ComparisonError(
                f"Comparison engine '{name}' not found. "
                f"Available engines: {', '.join(self.names()) or '(none)'}"
            ) from None

    def has(self, name: str) -> bool:
        return name in self._engines

    def names(self) -> list[str]:
        return sorted(self._engines)


def register_builtin_engines(registry: ComparisonEngineRegistry) -> ComparisonEngineRegistry:
    from visreg.comparison.engines import builtin_engines

    for engine in builtin_engines():
        registry.register(engine)
    return registry


def create_default_registry() -> ComparisonEngineRegistry:
    """Build a fresh registry holding the built-in Pillow engines."""
    return register_builtin_engines(ComparisonEngineRegistry())
