# tests/test_propagation.py
"""
Arch propagation tests.

Tests for:
- sideA writes mirrored to sideB on dual-sided subjects
- sideB writes never flow back
- Single-sided subjects untouched
- Unresolved raw text and scalar fields mirrored verbatim

Run with: pytest tests/test_propagation.py -v
"""

from caseconfig.catalog.models import ShadeFamily
from caseconfig.configuration.models import (
    AttributeKind,
    ConfigurationPair,
    ConfigurationRecord,
    ResolvedAttribute,
    ScalarField,
    Side,
    Subject,
)
from caseconfig.configuration.propagation import ArchPropagator

TEETH_BRAND = AttributeKind.TEETH_SHADE_BRAND
TEETH_VARIANT = AttributeKind.TEETH_SHADE_VARIANT
GUM_BRAND = AttributeKind.GUM_SHADE_BRAND


# ============================================================
# Propagator Unit
# ============================================================

class TestArchPropagator:

    def test_applies_only_to_side_a_of_dual_subject(self):
        propagator = ArchPropagator()
        dual = Subject(subject_id=1, is_dual_sided=True)
        single = Subject(subject_id=2, is_dual_sided=False)

        assert propagator.applies(dual, Side.SIDE_A)
        assert not propagator.applies(dual, Side.SIDE_B)
        assert not propagator.applies(single, Side.SIDE_A)

    def test_propagate_attribute_copies_slot(self):
        value = ResolvedAttribute(brand_id=7, brand_name="VITA Classical", raw_part1="7")
        pair = ConfigurationPair(side_a=ConfigurationRecord(teeth_shade=value))

        out = ArchPropagator().propagate_attribute(
            Subject(subject_id=1, is_dual_sided=True), Side.SIDE_A, ShadeFamily.TEETH, pair
        )

        assert out.side_b.teeth_shade == value
        assert out.side_b.gum_shade.is_empty

    def test_propagate_field_copies_value(self):
        pair = ConfigurationPair(side_a=ConfigurationRecord(stage_id=4))

        out = ArchPropagator().propagate_field(
            Subject(subject_id=1, is_dual_sided=True), Side.SIDE_A, ScalarField.STAGE_ID, pair
        )

        assert out.side_b.stage_id == 4

    def test_no_op_returns_same_pair(self):
        pair = ConfigurationPair(side_b=ConfigurationRecord(grade="Premium"))

        out = ArchPropagator().propagate_field(
            Subject(subject_id=1, is_dual_sided=True), Side.SIDE_B, ScalarField.GRADE, pair
        )

        assert out is pair


# ============================================================
# Through the Store
# ============================================================

class TestStorePropagation:

    def test_side_a_write_mirrors_identically(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_A, TEETH_BRAND, "VITA Classical")
        dual_store.set_attribute(1, Side.SIDE_A, TEETH_VARIANT, "A1")

        pair = dual_store.get_pair(1)
        assert pair.side_b.teeth_shade == pair.side_a.teeth_shade
        assert pair.side_b.teeth_shade.variant_id == 42

    def test_side_b_write_does_not_flow_back(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_A, TEETH_BRAND, "VITA")

        dual_store.set_attribute(1, Side.SIDE_B, TEETH_BRAND, "Chromascop")

        pair = dual_store.get_pair(1)
        assert pair.side_a.teeth_shade.brand_id == 7
        assert pair.side_b.teeth_shade.brand_id == 9

    def test_side_a_overwrites_independent_side_b(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_B, GUM_BRAND, "Ivoclar")

        dual_store.set_attribute(1, Side.SIDE_A, GUM_BRAND, "Pink")

        assert dual_store.get_record(1, Side.SIDE_B).gum_shade.brand_id == 20

    def test_single_sided_subject_untouched(self, dual_store):
        dual_store.set_attribute(2, Side.SIDE_A, TEETH_BRAND, "VITA")

        assert dual_store.get_record(2, Side.SIDE_B).teeth_shade.is_empty

    def test_unresolved_raw_text_mirrored(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_A, TEETH_BRAND, "Noritake")

        side_b = dual_store.get_record(1, Side.SIDE_B).teeth_shade
        assert side_b.brand_id is None
        assert side_b.raw_part1 == "Noritake"

    def test_clear_on_side_a_mirrors(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_A, TEETH_VARIANT, "2M2")

        dual_store.clear(1, Side.SIDE_A, TEETH_VARIANT)

        side_b = dual_store.get_record(1, Side.SIDE_B).teeth_shade
        assert side_b.brand_id == 8
        assert side_b.variant_id is None

    def test_fields_mirrored(self, dual_store):
        dual_store.set_field(1, Side.SIDE_A, ScalarField.IMPRESSIONS, [{"id": 1, "quantity": 2}])
        dual_store.set_field(1, Side.SIDE_A, ScalarField.GRADE_ID, 5)

        side_b = dual_store.get_record(1, Side.SIDE_B)
        assert side_b.impressions == [{"id": 1, "quantity": 2}]
        assert side_b.grade_id == 5

    def test_only_written_slot_is_mirrored(self, dual_store):
        dual_store.set_attribute(1, Side.SIDE_B, GUM_BRAND, "Ivoclar")

        dual_store.set_attribute(1, Side.SIDE_A, TEETH_BRAND, "VITA")

        side_b = dual_store.get_record(1, Side.SIDE_B)
        assert side_b.teeth_shade.brand_id == 7
        assert side_b.gum_shade.brand_id == 21
