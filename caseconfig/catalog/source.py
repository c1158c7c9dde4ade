# caseconfig/catalog/source.py
"""
Catalog data sources.

This module provides:
- Abstract catalog interface (CatalogSource base class)
- Stub implementation (in-memory / JSON file, for development and tests)
- Lab API implementation (httpx)
- Supabase implementation (supabase-py)

Provider Selection:
- CATALOG_PROVIDER=stub (default) | http | supabase
- Unknown values fall back to the stub with a warning

Every source returns raw brand rows; validation happens in
caseconfig.catalog.models. Any exception raised here is reported by
CatalogIndex.load as CatalogUnavailable.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

from caseconfig.db import (
    get_catalog_provider,
    get_catalog_stub_path,
    get_lab_api_base_url,
    get_lab_api_timeout,
    get_supabase_client,
    lab_api_headers,
    SELECT_GUM_SHADES,
    SELECT_TEETH_SHADES,
    TABLE_GUM_SHADE_BRANDS,
    TABLE_TEETH_SHADE_BRANDS,
)
from .models import ShadeFamily

log = logging.getLogger("caseconfig.catalog.source")

# Lab API path segment per family
FAMILY_PATHS = {
    ShadeFamily.TEETH: "teeth-shades",
    ShadeFamily.GUM: "gum-shades",
}


class LabIdMissing(ValueError):
    """The caller context does not identify a lab."""


def _lab_id(context) -> Optional[str]:
    lab_id = getattr(context, "lab_id", None) if context is not None else None
    return str(lab_id) if lab_id not in (None, "") else None


# ============================================================
# Abstract Catalog Source
# ============================================================

class CatalogSource(ABC):
    """
    Abstract base class for catalog providers.

    Implementations:
    - StubCatalogSource: In-memory rows (development, tests)
    - HttpCatalogSource: Lab API
    - SupabaseCatalogSource: Supabase tables
    """

    @abstractmethod
    def fetch_catalog(self, subject_id: int, family: ShadeFamily, context=None) -> List[Dict[str, Any]]:
        """
        Fetch brand rows (each with nested shades) for one subject.

        Args:
            subject_id: Product id the catalog belongs to.
            family: Teeth or gum shades.
            context: Optional CallerContext (lab scoping).

        Returns:
            List of raw brand dicts.
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return provider name for logging."""
        pass


# ============================================================
# Stub Implementation
# ============================================================

class StubCatalogSource(CatalogSource):
    """
    In-memory catalog keyed by (subject_id, family).

    A row list stored under subject_id None applies to every subject
    without its own entry.
    """

    def __init__(self, catalogs: Optional[Dict[Tuple[Optional[int], ShadeFamily], List[dict]]] = None):
        self._catalogs: Dict[Tuple[Optional[int], ShadeFamily], List[dict]] = dict(catalogs or {})

    @classmethod
    def from_json_file(cls, path: str) -> "StubCatalogSource":
        """
        Load a stub catalog file shaped as
        ``{"teeth-shade": [...brands], "gum-shade": [...brands]}``
        (shared by all subjects) or
        ``{"<subject_id>": {"teeth-shade": [...], "gum-shade": [...]}}``.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        catalogs: Dict[Tuple[Optional[int], ShadeFamily], List[dict]] = {}
        for key, value in (data or {}).items():
            if key in (ShadeFamily.TEETH.value, ShadeFamily.GUM.value):
                catalogs[(None, ShadeFamily(key))] = list(value or [])
                continue
            try:
                subject_id = int(key)
            except ValueError:
                log.warning("Ignoring stub catalog key %r", key)
                continue
            for fam_key, rows in (value or {}).items():
                catalogs[(subject_id, ShadeFamily(fam_key))] = list(rows or [])
        log.info("Stub catalog loaded from %s (%d entries)", path, len(catalogs))
        return cls(catalogs)

    def set_catalog(self, subject_id: Optional[int], family: ShadeFamily, rows: List[dict]) -> None:
        self._catalogs[(subject_id, family)] = list(rows)

    def fetch_catalog(self, subject_id: int, family: ShadeFamily, context=None) -> List[Dict[str, Any]]:
        rows = self._catalogs.get((subject_id, family))
        if rows is None:
            rows = self._catalogs.get((None, family), [])
        return list(rows)

    def get_provider_name(self) -> str:
        return "stub"


# ============================================================
# Lab API Implementation
# ============================================================

class HttpCatalogSource(CatalogSource):
    """
    Catalog from the lab API.

    Endpoint: GET {LAB_API_BASE_URL}/slip/lab/{lab_id}/products/{subject_id}/{teeth-shades|gum-shades}
    Response: {"success": bool, "message": str, "data": [...brands]}
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url if base_url is not None else get_lab_api_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_lab_api_timeout()

    def fetch_catalog(self, subject_id: int, family: ShadeFamily, context=None) -> List[Dict[str, Any]]:
        lab_id = _lab_id(context)
        if not lab_id:
            raise LabIdMissing("Lab ID not found in caller context")
        if not self.base_url:
            raise RuntimeError("LAB_API_BASE_URL not configured")

        url = f"{self.base_url}/slip/lab/{lab_id}/products/{subject_id}/{FAMILY_PATHS[family]}"
        response = httpx.get(url, headers=lab_api_headers(), timeout=self.timeout)
        response.raise_for_status()

        payload = response.json()
        if isinstance(payload, dict):
            data = payload.get("data")
        else:
            data = payload
        if not isinstance(data, list):
            raise ValueError("lab API catalog payload has no data list")
        return data

    def get_provider_name(self) -> str:
        return "http"


# ============================================================
# Supabase Implementation
# ============================================================

class SupabaseCatalogSource(CatalogSource):
    """
    Catalog from Supabase brand tables with embedded shades.

    Tables:
    - teeth_shade_brands (product_id, lab_id) -> teeth_shades
    - gum_shade_brands (product_id, lab_id) -> gum_shades
    """

    TABLES = {
        ShadeFamily.TEETH: (TABLE_TEETH_SHADE_BRANDS, SELECT_TEETH_SHADES),
        ShadeFamily.GUM: (TABLE_GUM_SHADE_BRANDS, SELECT_GUM_SHADES),
    }

    def fetch_catalog(self, subject_id: int, family: ShadeFamily, context=None) -> List[Dict[str, Any]]:
        client = get_supabase_client()
        if client is None:
            raise RuntimeError("Supabase client unavailable")

        table, columns = self.TABLES[family]
        query = client.table(table).select(columns).eq("product_id", subject_id)
        lab_id = _lab_id(context)
        if lab_id:
            query = query.eq("lab_id", lab_id)
        result = query.execute()
        return list(result.data or [])

    def get_provider_name(self) -> str:
        return "supabase"


# ============================================================
# Factory
# ============================================================

def get_catalog_source() -> CatalogSource:
    """
    Get the configured catalog source.

    Returns:
        CatalogSource instance for CATALOG_PROVIDER.
    """
    provider = get_catalog_provider()

    if provider == "http":
        return HttpCatalogSource()
    if provider == "supabase":
        return SupabaseCatalogSource()
    if provider != "stub":
        log.warning("Unknown CATALOG_PROVIDER '%s', falling back to stub", provider)

    path = get_catalog_stub_path()
    if path:
        return StubCatalogSource.from_json_file(path)
    return StubCatalogSource()
