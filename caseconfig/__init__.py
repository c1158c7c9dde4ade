# caseconfig/__init__.py
"""
Case configuration core.

Resolves shade selections against a subject's two-level catalog, keeps
the two arches of dual-sided products in sync, and memoizes delivery
estimates per (subject, stage).

Subpackages:
- catalog: CatalogBrand/CatalogVariant, CatalogIndex, catalog sources
- configuration: records, ConfigurationStore, ArchPropagator
- delivery: DerivedValueCache, lab API estimator

Modules:
- resolver: AttributeResolver
- db: environment settings, Supabase client
- routes / main: FastAPI surface
"""

from __future__ import annotations

__all__ = [
    "AttributeResolver",
    "CatalogIndex",
    "ConfigurationStore",
    "ArchPropagator",
    "DerivedValueCache",
]


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import pattern for clean module loading."""

    if name == "AttributeResolver":
        from .resolver import AttributeResolver
        return AttributeResolver

    if name == "CatalogIndex":
        from .catalog.index import CatalogIndex
        return CatalogIndex

    if name == "ConfigurationStore":
        from .configuration.store import ConfigurationStore
        return ConfigurationStore

    if name == "ArchPropagator":
        from .configuration.propagation import ArchPropagator
        return ArchPropagator

    if name == "DerivedValueCache":
        from .delivery.cache import DerivedValueCache
        return DerivedValueCache

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
