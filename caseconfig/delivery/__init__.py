# caseconfig/delivery/__init__.py
"""
Delivery Package

Submodules:
- cache: DerivedValueCache (memoized, coalesced async computation)
- estimator: DeliveryEstimate and the lab API compute function
"""

from __future__ import annotations

__all__ = [
    "CacheEntry",
    "ComputationFailure",
    "DerivedValueCache",
    "cache_key",
    "DeliveryEstimate",
    "HttpDeliveryEstimator",
]


def __getattr__(name: str):
    """Lazy import pattern for clean module loading."""

    if name in ("CacheEntry", "ComputationFailure", "DerivedValueCache", "cache_key"):
        from . import cache
        return getattr(cache, name)

    if name in ("DeliveryEstimate", "HttpDeliveryEstimator"):
        from . import estimator
        return getattr(estimator, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
