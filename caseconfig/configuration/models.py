# caseconfig/configuration/models.py
"""
Value types for per-subject configuration.

Design Decisions:
- Pydantic v2 frozen models; updates build a new record (model_copy) and
  replace it in the store, never mutate in place
- One ResolvedAttribute slot per shade family; brand-level and
  variant-level attribute kinds write the two halves of the same slot
- raw_part1 / raw_part2 hold ids-as-strings when resolved (stable across
  catalog renames), raw text otherwise

Invariant:
- variant_id set => brand_id set. Violations are InconsistentRecordError
  and are repaired by the store (variant cleared), never raised to callers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from caseconfig.catalog.models import ShadeFamily

log = logging.getLogger("caseconfig.configuration.models")

# ============================================================
# Constants
# ============================================================

# Roles that pick a lab explicitly; everyone else is scoped to their own tenant
LAB_SELECTING_ROLES = frozenset({"office_admin", "doctor"})

# Product type tokens marking a subject that spans both arches
DUAL_ARCH_TOKENS = ("Maxillary", "Mandibular")


class InconsistentRecordError(ValueError):
    """A variant id is stored without its owning brand id."""


# ============================================================
# Enumerations
# ============================================================

class Side(str, Enum):
    """Configuration slot of a subject. sideA is the primary (upper) arch."""

    SIDE_A = "sideA"
    SIDE_B = "sideB"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "maxillary": cls.SIDE_A,
            "upper": cls.SIDE_A,
            "mandibular": cls.SIDE_B,
            "lower": cls.SIDE_B,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None

    @property
    def is_primary(self) -> bool:
        return self is Side.SIDE_A


class AttributeKind(str, Enum):
    TEETH_SHADE_BRAND = "teeth-shade-brand"
    TEETH_SHADE_VARIANT = "teeth-shade-variant"
    GUM_SHADE_BRAND = "gum-shade-brand"
    GUM_SHADE_VARIANT = "gum-shade-variant"

    @property
    def family(self) -> ShadeFamily:
        if self in (AttributeKind.TEETH_SHADE_BRAND, AttributeKind.TEETH_SHADE_VARIANT):
            return ShadeFamily.TEETH
        return ShadeFamily.GUM

    @property
    def is_brand_level(self) -> bool:
        return self in (AttributeKind.TEETH_SHADE_BRAND, AttributeKind.GUM_SHADE_BRAND)


class ScalarField(str, Enum):
    """Record fields written verbatim, without catalog resolution."""

    GRADE = "grade"
    GRADE_ID = "grade_id"
    STAGE = "stage"
    STAGE_ID = "stage_id"
    IMPRESSIONS = "impressions"


# ============================================================
# Resolved Attribute
# ============================================================

class ResolvedAttribute(BaseModel):
    """
    Outcome of resolving a selection against a catalog.

    Attributes:
        brand_id / brand_name: Canonical brand, if resolved.
        variant_id / variant_name: Canonical variant, if resolved.
        raw_part1: Brand id as string when resolved, else the raw selection.
        raw_part2: Variant id as string when resolved, else the raw selection.
    """

    model_config = ConfigDict(frozen=True)

    brand_id: Optional[int] = None
    brand_name: Optional[str] = None
    variant_id: Optional[int] = None
    variant_name: Optional[str] = None
    raw_part1: str = ""
    raw_part2: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            self.brand_id is None
            and self.variant_id is None
            and not self.raw_part1
            and not self.raw_part2
        )

    @property
    def brand_unresolved(self) -> bool:
        """Raw brand text present but no canonical brand."""
        return self.brand_id is None and bool(self.raw_part1)

    @property
    def variant_unresolved(self) -> bool:
        return self.variant_id is None and bool(self.raw_part2)

    @property
    def display_brand(self) -> str:
        return self.brand_name or self.raw_part1

    @property
    def display_variant(self) -> str:
        return self.variant_name or self.raw_part2

    def without_variant(self) -> "ResolvedAttribute":
        return self.model_copy(update={"variant_id": None, "variant_name": None, "raw_part2": ""})

    def check_consistency(self) -> None:
        if self.variant_id is not None and self.brand_id is None:
            raise InconsistentRecordError(
                f"variant {self.variant_id} stored without an owning brand"
            )


# ============================================================
# Records
# ============================================================

class ConfigurationRecord(BaseModel):
    """Configuration of one side of a subject."""

    model_config = ConfigDict(frozen=True)

    teeth_shade: ResolvedAttribute = Field(default_factory=ResolvedAttribute)
    gum_shade: ResolvedAttribute = Field(default_factory=ResolvedAttribute)
    grade: Optional[str] = None
    grade_id: Optional[int] = None
    stage: Optional[str] = None
    stage_id: Optional[int] = None
    impressions: Optional[Any] = None

    def attribute(self, family: ShadeFamily) -> ResolvedAttribute:
        if family is ShadeFamily.TEETH:
            return self.teeth_shade
        return self.gum_shade

    def with_attribute(self, family: ShadeFamily, value: ResolvedAttribute) -> "ConfigurationRecord":
        slot = "teeth_shade" if family is ShadeFamily.TEETH else "gum_shade"
        return self.model_copy(update={slot: value})

    def with_field(self, field: ScalarField, value: Any) -> "ConfigurationRecord":
        return self.model_copy(update={field.value: value})


class ConfigurationPair(BaseModel):
    """Both sides of one subject, as exposed to the surrounding workflow."""

    model_config = ConfigDict(frozen=True)

    side_a: ConfigurationRecord = Field(default_factory=ConfigurationRecord)
    side_b: ConfigurationRecord = Field(default_factory=ConfigurationRecord)

    def record(self, side: Side) -> ConfigurationRecord:
        return self.side_a if side is Side.SIDE_A else self.side_b

    def with_record(self, side: Side, record: ConfigurationRecord) -> "ConfigurationPair":
        key = "side_a" if side is Side.SIDE_A else "side_b"
        return self.model_copy(update={key: record})


class Subject(BaseModel):
    """A configurable product instance within a case."""

    model_config = ConfigDict(frozen=True)

    subject_id: int
    is_dual_sided: bool = False
    product_type: Optional[str] = None

    @classmethod
    def from_product_type(cls, subject_id: int, product_type: Optional[str]) -> "Subject":
        """Dual-sided when the product type names both arches."""
        text = product_type or ""
        dual = all(token in text for token in DUAL_ARCH_TOKENS)
        return cls(subject_id=subject_id, is_dual_sided=dual, product_type=product_type)


# ============================================================
# Caller Context
# ============================================================

@dataclass(frozen=True)
class CallerContext:
    """
    Who is calling, passed explicitly into store and catalog operations.

    Attributes:
        role: Caller role (e.g. lab_admin, office_admin, doctor).
        tenant_id: Caller's own customer/lab id.
        selected_lab_id: Lab picked by office-side callers.
    """

    role: Optional[str] = None
    tenant_id: Optional[str] = None
    selected_lab_id: Optional[str] = None

    @property
    def lab_id(self) -> Optional[str]:
        if self.role in LAB_SELECTING_ROLES:
            return self.selected_lab_id
        return self.tenant_id
