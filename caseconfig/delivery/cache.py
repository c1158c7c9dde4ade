# caseconfig/delivery/cache.py
"""
Derived-value cache for delivery estimates.

Memoizes an expensive async computation keyed by "{subject_id}-{stage_id}"
and collapses concurrent calls for the same key into one computation.

Rules:
- Completed entries are write-once and never expire
- At most one in-flight computation per key
- A failed computation clears its in-flight marker; every caller awaiting
  it receives the same ComputationFailure and the next call retries
- A computation that completes with None is returned but not stored
- A caller abandoning its await does not cancel the shared computation

Concurrency:
All reads and writes of the two tables happen on the event loop thread
with no await between "check" and "register", so two callers can never
both start a computation for the same key.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

log = logging.getLogger("caseconfig.delivery.cache")

ComputeFn = Callable[[int, int], Awaitable[Any]]


class ComputationFailure(Exception):
    """The injected computation raised for a key."""

    def __init__(self, key: str, cause: BaseException):
        self.key = key
        self.cause = cause
        super().__init__(f"computation failed for {key}: {cause}")


def cache_key(subject_id: int, stage_id: int) -> str:
    return f"{subject_id}-{stage_id}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DerivedValueCache:
    """
    Usage:
        cache = DerivedValueCache(HttpDeliveryEstimator(context))
        estimate = await cache.get(subject_id=12, stage_id=3)
    """

    def __init__(self, compute: ComputeFn):
        self._compute = compute
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def get(self, subject_id: int, stage_id: int) -> Any:
        key = cache_key(subject_id, stage_id)

        entry = self._entries.get(key)
        if entry is not None:
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, subject_id, stage_id))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
        else:
            log.debug("Joining in-flight computation for %s", key)

        # shield: cancelling this caller must not cancel the shared task
        return await asyncio.shield(task)

    async def _run(self, key: str, subject_id: int, stage_id: int) -> Any:
        try:
            value = await self._compute(subject_id, stage_id)
        except Exception as e:
            log.error("Delivery computation failed for %s: %s", key, str(e)[:200])
            raise ComputationFailure(key, e) from e
        else:
            if value is not None:
                self._entries[key] = CacheEntry(key=key, value=value)
            else:
                log.info("Computation for %s returned no value; not cached", key)
            return value
        finally:
            self._in_flight.pop(key, None)

    def peek(self, subject_id: int, stage_id: int) -> Optional[CacheEntry]:
        """Completed entry for a key, without computing."""
        return self._entries.get(cache_key(subject_id, stage_id))

    def is_in_flight(self, subject_id: int, stage_id: int) -> bool:
        return cache_key(subject_id, stage_id) in self._in_flight

    def __len__(self) -> int:
        return len(self._entries)


def _consume_exception(task: asyncio.Future) -> None:
    # marks the exception retrieved when every awaiting caller has gone away
    if not task.cancelled():
        task.exception()
