# caseconfig/configuration/propagation.py
"""
Arch propagation for dual-sided subjects.

Rules:
- sideA -> sideB only; writes made on sideB never flow back
- The sideA value is mirrored verbatim, unresolved raw text included;
  sideB is never resolved independently
- Applied synchronously inside the triggering store write
- Non-dual-sided subjects: no-op
"""

from __future__ import annotations

import logging

from caseconfig.catalog.models import ShadeFamily
from .models import ConfigurationPair, ScalarField, Side, Subject

log = logging.getLogger("caseconfig.propagation")


class ArchPropagator:

    def applies(self, subject: Subject, side: Side) -> bool:
        return subject.is_dual_sided and side.is_primary

    def propagate_attribute(
        self,
        subject: Subject,
        side: Side,
        family: ShadeFamily,
        pair: ConfigurationPair,
    ) -> ConfigurationPair:
        """Return the pair with sideB's slot for `family` equal to sideA's."""
        if not self.applies(subject, side):
            return pair
        mirrored = pair.side_b.with_attribute(family, pair.side_a.attribute(family))
        log.debug("Mirrored %s to sideB for subject %s", family.value, subject.subject_id)
        return pair.with_record(Side.SIDE_B, mirrored)

    def propagate_field(
        self,
        subject: Subject,
        side: Side,
        field: ScalarField,
        pair: ConfigurationPair,
    ) -> ConfigurationPair:
        if not self.applies(subject, side):
            return pair
        value = getattr(pair.side_a, field.value)
        mirrored = pair.side_b.with_field(field, value)
        log.debug("Mirrored %s to sideB for subject %s", field.value, subject.subject_id)
        return pair.with_record(Side.SIDE_B, mirrored)
