# caseconfig/catalog/index.py
"""
Read-only catalog view for one subject and shade family.

Built fresh whenever the subject's catalog is fetched or refreshed. The
index never mutates; a refresh replaces it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from .models import CatalogBrand, ShadeFamily, parse_brands

log = logging.getLogger("caseconfig.catalog.index")


class CatalogUnavailable(Exception):
    """The catalog data source could not supply data for a subject."""

    def __init__(self, subject_id: int, family: ShadeFamily, reason: str = ""):
        self.subject_id = subject_id
        self.family = family
        self.reason = reason
        super().__init__(
            f"catalog unavailable for subject {subject_id} ({family.value})"
            + (f": {reason}" if reason else "")
        )


@dataclass(frozen=True)
class CatalogIndex:
    subject_id: int
    family: ShadeFamily
    brands: Tuple[CatalogBrand, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, subject_id: int, family: ShadeFamily) -> "CatalogIndex":
        return cls(subject_id=subject_id, family=family, brands=())

    @classmethod
    def from_brands(
        cls, subject_id: int, family: ShadeFamily, brands: Sequence[Any]
    ) -> "CatalogIndex":
        """Accepts either CatalogBrand models or raw payload dicts."""
        return cls(subject_id=subject_id, family=family, brands=tuple(parse_brands(brands)))

    @classmethod
    def load(
        cls,
        source,
        subject_id: int,
        family: ShadeFamily = ShadeFamily.TEETH,
        context=None,
    ) -> "CatalogIndex":
        """
        Fetch and validate the catalog for a subject.

        Raises:
            CatalogUnavailable: if the source fails or returns a non-list payload.
        """
        try:
            rows = source.fetch_catalog(subject_id, family, context)
        except CatalogUnavailable:
            raise
        except Exception as e:
            raise CatalogUnavailable(subject_id, family, str(e)[:200]) from e

        if rows is None or not isinstance(rows, (list, tuple)):
            raise CatalogUnavailable(subject_id, family, "source returned no catalog list")

        index = cls.from_brands(subject_id, family, rows)
        log.info(
            "Loaded %s catalog for subject %s: %d brands",
            family.value, subject_id, len(index.brands),
        )
        return index

    def __len__(self) -> int:
        return len(self.brands)

    def find_brands_with_variant(self, variant_selector: Any) -> List[CatalogBrand]:
        """Every brand, in catalog order, owning a variant that matches exactly."""
        return [b for b in self.brands if b.find_variant(variant_selector) is not None]

    def brand_by_id(self, brand_id: Optional[int]) -> Optional[CatalogBrand]:
        if brand_id is None:
            return None
        for brand in self.brands:
            if brand.id == brand_id:
                return brand
        return None
