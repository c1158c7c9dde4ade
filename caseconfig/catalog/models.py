# caseconfig/catalog/models.py
"""
Typed catalog snapshot for one subject.

A catalog is a two-level tree: brands (shade systems) each owning an
ordered list of variants (individual shades). Payloads from the lab API or
Supabase are untyped dicts; they are validated here, once, at ingestion.

Design Decisions:
- Pydantic v2, frozen models (a snapshot is never mutated after load)
- Original payload keys accepted via aliases: ``shades`` -> variants,
  ``system_name`` -> system_name
- Invalid rows are skipped with a warning instead of failing the whole load
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

log = logging.getLogger("caseconfig.catalog.models")


class ShadeFamily(str, Enum):
    """Which catalog of a subject an attribute resolves against."""

    TEETH = "teeth-shade"
    GUM = "gum-shade"


class CatalogVariant(BaseModel):
    """A selectable shade inside one brand."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    name: str = Field(..., min_length=1)
    sequence: Optional[int] = None
    price: Optional[float] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    def matches(self, selector: Any) -> bool:
        """Exact match on name, id, or id-as-string."""
        if selector is None:
            return False
        if isinstance(selector, int) and not isinstance(selector, bool):
            return self.id == selector
        text = str(selector)
        return self.name == text or str(self.id) == text


class CatalogBrand(BaseModel):
    """A shade system and the variants it owns."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    name: str = Field(..., min_length=1)
    system_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("system_name", "systemName"),
    )
    variants: Tuple[CatalogVariant, ...] = Field(
        default=(),
        validation_alias=AliasChoices("variants", "shades"),
    )

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("variants", mode="before")
    @classmethod
    def drop_invalid_variants(cls, v):
        if v is None:
            return ()
        if not isinstance(v, (list, tuple)):
            raise ValueError("variants must be a list")
        kept = []
        for row in v:
            try:
                kept.append(CatalogVariant.model_validate(row))
            except ValidationError as e:
                log.warning("Skipping invalid catalog variant %r: %s", row, e.errors()[:1])
        return tuple(kept)

    def find_variant(self, selector: Any) -> Optional[CatalogVariant]:
        for variant in self.variants:
            if variant.matches(selector):
                return variant
        return None


def parse_brands(rows: Iterable[Any]) -> List[CatalogBrand]:
    """
    Validate raw brand rows into CatalogBrand models.

    Rows that are not dicts or fail validation are logged and skipped, so a
    single bad row never hides the rest of the catalog.
    """
    brands: List[CatalogBrand] = []
    for i, row in enumerate(rows or []):
        if isinstance(row, CatalogBrand):
            brands.append(row)
            continue
        if not isinstance(row, dict):
            log.warning("Catalog row %d is not an object, skipping", i)
            continue
        try:
            brands.append(CatalogBrand.model_validate(row))
        except ValidationError as e:
            log.warning("Skipping invalid catalog brand at row %d: %s", i, e.errors()[:1])
    return brands
