"""
Freshness evaluation with lazy eviction.

Staleness is only checked when a key is looked up; there is no background
sweep. All rows stored under one key form a single freshness unit judged by
the first row's creation time.
"""
import logging
import time
from typing import Callable, Sequence

from .core import CachedRow, CacheKey, FreshnessVerdict, ResourcePolicy
from .errors import CacheError
from .store import RowStore

logger = logging.getLogger("cache.freshness")

Clock = Callable[[], int]


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class FreshnessEvaluator:
    """Judges stored rows against a resource's TTL and evicts stale keys."""

    def __init__(self, store: RowStore, clock: Clock = now_millis):
        self._store = store
        self._clock = clock

    async def evaluate(
        self,
        policy: ResourcePolicy,
        rows: Sequence[CachedRow],
        key: CacheKey,
    ) -> FreshnessVerdict:
        """
        Decide whether stored rows can be served.

        Args:
            policy: Policy of the resource the rows belong to
            rows: Rows returned by the store for `key`
            key: Lookup key, used to evict stale rows

        Returns:
            FRESH with the rows when age <= TTL, MISS when there are no rows,
            EVICTED when the rows were past TTL
        """
        if not rows:
            return FreshnessVerdict.miss()

        age = self._clock() - rows[0].created_at
        if age <= policy.ttl_millis:
            return FreshnessVerdict.fresh(rows, age)

        logger.info(
            f"Evicting {len(rows)} stale {policy.resource_type} rows for {key} "
            f"[age={age}ms, ttl={policy.ttl_millis}ms]"
        )
        try:
            await self._store.delete_by_key(policy, key)
        except CacheError as e:
            # Rows left behind are re-evaluated and re-deleted on the next lookup
            logger.warning(f"Eviction failed for {policy.resource_type} [{key}]: {e}")
        return FreshnessVerdict.evicted(age)
