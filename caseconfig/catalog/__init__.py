# caseconfig/catalog/__init__.py
"""
Catalog Package

Two-level shade catalog (brand -> variants) for one subject.

Submodules:
- models: Typed, frozen CatalogBrand / CatalogVariant, ingestion validation
- index: Read-only CatalogIndex, CatalogUnavailable
- source: Catalog providers (stub, lab API, Supabase)
"""

from __future__ import annotations

__all__ = [
    # Models
    "CatalogBrand",
    "CatalogVariant",
    "ShadeFamily",
    "parse_brands",
    # Index
    "CatalogIndex",
    "CatalogUnavailable",
    # Sources
    "CatalogSource",
    "StubCatalogSource",
    "HttpCatalogSource",
    "SupabaseCatalogSource",
    "get_catalog_source",
]


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import pattern for clean module loading."""

    if name in ("CatalogBrand", "CatalogVariant", "ShadeFamily", "parse_brands"):
        from . import models
        return getattr(models, name)

    if name in ("CatalogIndex", "CatalogUnavailable"):
        from . import index
        return getattr(index, name)

    if name in ("CatalogSource", "StubCatalogSource", "HttpCatalogSource",
                "SupabaseCatalogSource", "get_catalog_source"):
        from . import source
        return getattr(source, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
