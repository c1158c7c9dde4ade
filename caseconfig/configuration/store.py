# caseconfig/configuration/store.py
"""
Configuration store: the single place resolved attributes are written.

Holds one ConfigurationPair (sideA, sideB) per subject. Every write:
  1. loads (or reuses) the subject's catalog for the attribute's family
  2. resolves the selection
  3. replaces the side's record with a new immutable record
  4. mirrors sideA writes to sideB for dual-sided subjects
  5. notifies listeners with the resulting pair

Steps 3-4 happen under one lock, so readers never see a half-propagated
pair. Catalog loading happens outside the lock.

Brand-level writes always clear the slot's variant half, even when a
same-named variant exists under the new brand.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from caseconfig.catalog.index import CatalogIndex, CatalogUnavailable
from caseconfig.catalog.models import ShadeFamily
from caseconfig.catalog.source import CatalogSource, get_catalog_source
from caseconfig.resolver import AttributeResolver
from .models import (
    AttributeKind,
    CallerContext,
    ConfigurationPair,
    ConfigurationRecord,
    InconsistentRecordError,
    ResolvedAttribute,
    ScalarField,
    Side,
    Subject,
)
from .propagation import ArchPropagator

log = logging.getLogger("caseconfig.store")

Listener = Callable[[int, ConfigurationPair], None]


class UnknownSubject(KeyError):
    """No subject with this id has been added to the store."""


class ConfigurationStore:
    """
    Per-subject configuration records.

    Usage:
        store = ConfigurationStore(StubCatalogSource(...))
        store.add_subject(Subject.from_product_type(12, "Maxillary, Mandibular"))
        store.set_attribute(12, Side.SIDE_A, AttributeKind.TEETH_SHADE_BRAND, "VITA Classical")
        store.set_attribute(12, Side.SIDE_A, AttributeKind.TEETH_SHADE_VARIANT, "A1")
        store.get_pair(12).side_b.teeth_shade  # mirrored
    """

    def __init__(
        self,
        source: Optional[CatalogSource] = None,
        resolver: Optional[AttributeResolver] = None,
        propagator: Optional[ArchPropagator] = None,
    ):
        self.source = source if source is not None else get_catalog_source()
        self.resolver = resolver or AttributeResolver()
        self.propagator = propagator or ArchPropagator()
        self._subjects: Dict[int, Subject] = {}
        self._pairs: Dict[int, ConfigurationPair] = {}
        self._catalogs: Dict[Tuple[int, ShadeFamily], CatalogIndex] = {}
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    # ============================================================
    # Subject lifecycle
    # ============================================================

    def add_subject(self, subject: Subject) -> ConfigurationPair:
        """Register a subject with two empty records. Re-adding keeps existing records."""
        with self._lock:
            self._subjects[subject.subject_id] = subject
            pair = self._pairs.setdefault(subject.subject_id, ConfigurationPair())
        log.info(
            "Subject %s added (dual_sided=%s)", subject.subject_id, subject.is_dual_sided
        )
        return pair

    def remove_subject(self, subject_id: int) -> None:
        with self._lock:
            self._require(subject_id)
            del self._subjects[subject_id]
            del self._pairs[subject_id]
            for family in ShadeFamily:
                self._catalogs.pop((subject_id, family), None)
        log.info("Subject %s removed", subject_id)

    def get_subject(self, subject_id: int) -> Subject:
        with self._lock:
            return self._require(subject_id)

    def has_subject(self, subject_id: int) -> bool:
        return subject_id in self._subjects

    def _require(self, subject_id: int) -> Subject:
        subject = self._subjects.get(subject_id)
        if subject is None:
            raise UnknownSubject(subject_id)
        return subject

    # ============================================================
    # Catalogs
    # ============================================================

    def register_catalog(self, subject_id: int, family: ShadeFamily, brands) -> CatalogIndex:
        """Install an already-fetched catalog (CatalogIndex, models, or raw rows)."""
        if isinstance(brands, CatalogIndex):
            index = brands
        else:
            index = CatalogIndex.from_brands(subject_id, family, brands)
        with self._lock:
            self._catalogs[(subject_id, family)] = index
        return index

    def refresh_catalog(self, subject_id: int, family: Optional[ShadeFamily] = None) -> None:
        """Drop cached catalogs so the next write fetches fresh data."""
        families = [family] if family is not None else list(ShadeFamily)
        with self._lock:
            for fam in families:
                self._catalogs.pop((subject_id, fam), None)
        log.info("Catalog cache cleared for subject %s", subject_id)

    def catalog(
        self,
        subject_id: int,
        family: ShadeFamily,
        context: Optional[CallerContext] = None,
    ) -> CatalogIndex:
        """
        Cached catalog for a subject, loading it on first use.

        A CatalogUnavailable failure degrades to an empty index (not cached,
        so the next write retries the source).
        """
        index = self._catalogs.get((subject_id, family))
        if index is not None:
            return index
        try:
            index = CatalogIndex.load(self.source, subject_id, family, context)
        except CatalogUnavailable as e:
            log.warning("%s - resolving against an empty catalog", e)
            return CatalogIndex.empty(subject_id, family)
        with self._lock:
            # subject may have been removed while the source was fetching
            if subject_id in self._subjects:
                self._catalogs[(subject_id, family)] = index
        return index

    # ============================================================
    # Reads
    # ============================================================

    def get_pair(self, subject_id: int) -> ConfigurationPair:
        with self._lock:
            self._require(subject_id)
            return self._pairs[subject_id]

    def get_record(self, subject_id: int, side: Side) -> ConfigurationRecord:
        return self.get_pair(subject_id).record(Side(side))

    def get_attribute(self, subject_id: int, side: Side, kind: AttributeKind) -> ResolvedAttribute:
        kind = AttributeKind(kind)
        return self.get_record(subject_id, side).attribute(kind.family)

    # ============================================================
    # Writes
    # ============================================================

    def set_attribute(
        self,
        subject_id: int,
        side: Side,
        kind: AttributeKind,
        selection: Any,
        context: Optional[CallerContext] = None,
    ) -> ResolvedAttribute:
        """
        Resolve `selection` and write it into the side's slot for `kind`.

        Returns:
            The ResolvedAttribute now stored on `side`.
        """
        side, kind = Side(side), AttributeKind(kind)
        self.get_subject(subject_id)
        index = self.catalog(subject_id, kind.family, context)

        with self._lock:
            self._require(subject_id)
            current = self._pairs[subject_id].record(side).attribute(kind.family)
            value = self.resolver.resolve(kind, selection, index, current)
            if kind.is_brand_level:
                value = value.without_variant()
            value = self._ensure_consistent(subject_id, value)
            pair = self._write_attribute(subject_id, side, kind.family, value)

        self._notify(subject_id, pair)
        return value

    def clear(
        self,
        subject_id: int,
        side: Side,
        kind: AttributeKind,
    ) -> ResolvedAttribute:
        """
        Reset an attribute kind. Clearing a brand empties the whole slot;
        clearing a variant keeps the brand half.
        """
        side, kind = Side(side), AttributeKind(kind)
        with self._lock:
            self._require(subject_id)
            current = self._pairs[subject_id].record(side).attribute(kind.family)
            value = ResolvedAttribute() if kind.is_brand_level else current.without_variant()
            pair = self._write_attribute(subject_id, side, kind.family, value)

        self._notify(subject_id, pair)
        return value

    def set_field(
        self,
        subject_id: int,
        side: Side,
        field: Union[ScalarField, str],
        value: Any,
    ) -> ConfigurationRecord:
        """Write a scalar field verbatim; mirrored like attributes."""
        side, field = Side(side), ScalarField(field)
        with self._lock:
            subject = self._require(subject_id)
            pair = self._pairs[subject_id]
            pair = pair.with_record(side, pair.record(side).with_field(field, value))
            pair = self.propagator.propagate_field(subject, side, field, pair)
            self._pairs[subject_id] = pair

        self._notify(subject_id, pair)
        return pair.record(side)

    def _write_attribute(
        self,
        subject_id: int,
        side: Side,
        family: ShadeFamily,
        value: ResolvedAttribute,
    ) -> ConfigurationPair:
        # caller holds self._lock
        subject = self._subjects[subject_id]
        pair = self._pairs[subject_id]
        pair = pair.with_record(side, pair.record(side).with_attribute(family, value))
        pair = self.propagator.propagate_attribute(subject, side, family, pair)
        self._pairs[subject_id] = pair
        return pair

    def _ensure_consistent(self, subject_id: int, value: ResolvedAttribute) -> ResolvedAttribute:
        try:
            value.check_consistency()
        except InconsistentRecordError as e:
            log.error("Subject %s: %s; clearing variant", subject_id, e)
            return value.without_variant()
        return value

    # ============================================================
    # Notifications
    # ============================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, subject_id: int, pair: ConfigurationPair) -> None:
        for listener in list(self._listeners):
            try:
                listener(subject_id, pair)
            except Exception as e:
                log.error("Configuration listener failed for subject %s: %s", subject_id, e)
