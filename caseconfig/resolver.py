# caseconfig/resolver.py
"""
Attribute resolver: free-form selection -> canonical (brand, variant).

Brand tiers (first tier with a match wins, catalog order within a tier):
  1. exact: name, system_name, or id-as-string equals the selection
  2. substring: name contains the selection or the selection contains name
  3. normalized: lower-cased, non-alphanumerics stripped, forms equal

Variant resolution:
  1. exact match (name, id, id-as-string) inside the resolved brand
  2. otherwise the first brand anywhere in the catalog owning a match;
     that brand overrides the one resolved from the brand selection
  3. otherwise the variant stays unresolved with the raw text kept

Resolution is total: it never raises, a miss degrades to raw text.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from caseconfig.catalog.index import CatalogIndex
from caseconfig.catalog.models import CatalogBrand
from caseconfig.configuration.models import AttributeKind, ResolvedAttribute

__all__ = ["AttributeResolver", "normalize_token"]

log = logging.getLogger("caseconfig.resolver")

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_token(value: Any) -> str:
    """'VITA-Classical' and 'vita classical' both become 'vitaclassical'."""
    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value).lower())


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class AttributeResolver:
    """Stateless; one instance can serve every subject."""

    # ------------------------------------------------------------
    # Brand
    # ------------------------------------------------------------

    def find_brand(self, selection: Any, index: CatalogIndex) -> Optional[CatalogBrand]:
        text = _text(selection)
        if not text or not index.brands:
            return None

        for brand in index.brands:
            if brand.name == text or brand.system_name == text or str(brand.id) == text:
                return brand

        for brand in index.brands:
            if text in brand.name or brand.name in text:
                return brand

        wanted = normalize_token(text)
        if wanted:
            for brand in index.brands:
                if normalize_token(brand.name) == wanted:
                    return brand
        return None

    def resolve_brand(self, selection: Any, index: CatalogIndex) -> ResolvedAttribute:
        """Resolve a brand-level selection. The variant half is always empty."""
        text = _text(selection)
        brand = self.find_brand(text, index)
        if brand is None:
            if text:
                log.warning(
                    "Brand not found for %s selection %r (subject %s)",
                    index.family.value, text, index.subject_id,
                )
            return ResolvedAttribute(raw_part1=text)
        return ResolvedAttribute(
            brand_id=brand.id,
            brand_name=brand.name,
            raw_part1=str(brand.id),
        )

    # ------------------------------------------------------------
    # Variant
    # ------------------------------------------------------------

    def resolve_variant(
        self,
        selection: Any,
        index: CatalogIndex,
        brand_selection: Any = None,
    ) -> ResolvedAttribute:
        """
        Resolve a variant-level selection, optionally within a brand.

        Args:
            selection: Variant name, id, or id-as-string.
            index: Catalog to search.
            brand_selection: The brand already chosen for this slot. An int is
                a stored brand id and is looked up by id; text goes through the
                brand tiers.

        Returns:
            ResolvedAttribute whose brand is always the variant's owning brand
            when the variant resolves.
        """
        text = _text(selection)
        brand_text = _text(brand_selection)
        if isinstance(brand_selection, int) and not isinstance(brand_selection, bool):
            # a stored brand id is looked up by id only, never by name tiers
            brand = index.brand_by_id(brand_selection)
        else:
            brand = self.find_brand(brand_text, index) if brand_text else None

        variant = brand.find_variant(text) if (brand is not None and text) else None
        effective = brand

        if variant is None and text:
            owners = index.find_brands_with_variant(text)
            if owners:
                effective = owners[0]
                variant = effective.find_variant(text)
                if brand is not None and effective.id != brand.id:
                    log.info(
                        "Variant %r belongs to brand %s, overriding brand %s (subject %s)",
                        text, effective.id, brand.id, index.subject_id,
                    )

        if variant is not None and effective is not None:
            return ResolvedAttribute(
                brand_id=effective.id,
                brand_name=effective.name,
                variant_id=variant.id,
                variant_name=variant.name,
                raw_part1=str(effective.id),
                raw_part2=str(variant.id),
            )

        if text:
            log.warning(
                "Variant not found for %s selection %r (subject %s)",
                index.family.value, text, index.subject_id,
            )
        if brand is not None:
            return ResolvedAttribute(
                brand_id=brand.id,
                brand_name=brand.name,
                raw_part1=str(brand.id),
                raw_part2=text,
            )
        return ResolvedAttribute(raw_part1=brand_text, raw_part2=text)

    # ------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------

    def resolve(
        self,
        kind: AttributeKind,
        selection: Any,
        index: CatalogIndex,
        current: Optional[ResolvedAttribute] = None,
    ) -> ResolvedAttribute:
        """Resolve a selection for an attribute kind given the slot's current value."""
        if kind.is_brand_level:
            return self.resolve_brand(selection, index)
        brand_selection = None
        if current is not None:
            brand_selection = current.brand_id if current.brand_id is not None else current.raw_part1
        return self.resolve_variant(selection, index, brand_selection=brand_selection)
