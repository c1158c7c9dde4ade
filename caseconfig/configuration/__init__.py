# caseconfig/configuration/__init__.py
"""
Configuration Package

Per-subject, two-sided configuration records and the rules that write them.

Invariants:
- Records are immutable values; every write replaces the record
- A brand-level write clears the slot's variant in the same update
- variant_id is never stored without brand_id
- sideA writes on dual-sided subjects are mirrored to sideB before the
  write returns; sideB writes never flow back

Submodules:
- models: Side, AttributeKind, ResolvedAttribute, records, Subject, CallerContext
- store: ConfigurationStore
- propagation: ArchPropagator
"""

from __future__ import annotations

__all__ = [
    # Models
    "AttributeKind",
    "CallerContext",
    "ConfigurationPair",
    "ConfigurationRecord",
    "InconsistentRecordError",
    "ResolvedAttribute",
    "ScalarField",
    "Side",
    "Subject",
    # Store
    "ConfigurationStore",
    "UnknownSubject",
    # Propagation
    "ArchPropagator",
]


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import pattern for clean module loading."""

    if name in ("ConfigurationStore", "UnknownSubject"):
        from . import store
        return getattr(store, name)

    if name == "ArchPropagator":
        from .propagation import ArchPropagator
        return ArchPropagator

    if name in __all__:
        from . import models
        return getattr(models, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
