"""
Cache-aside orchestration over the persistent row store.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from .coalescer import RequestCoalescer
from .core import CachedRow, CacheKey, ResourcePolicy, VerdictKind
from .errors import (
    KeyKindMismatch,
    NoDataAvailable,
    NoUpstreamData,
    UpstreamError,
    UpstreamUnavailable,
)
from .freshness import Clock, FreshnessEvaluator, now_millis
from .store import RowStore
from .ttl_policies import DEFAULT_REGISTRY, ResourceRegistry

logger = logging.getLogger("cache.manager")

# Provider + normalizer for one resource type: key -> canonical field mappings
FetchFn = Callable[[CacheKey], Awaitable[Sequence[Mapping[str, Any]]]]


class CacheManager:
    """
    Resolves a resource for a key, serving stored rows while they are fresh
    and refilling from upstream otherwise.

    Per call to resolve():
    1. Look up the policy (UnknownResource if unregistered)
    2. Load rows for the key
    3. Judge them; stale rows are evicted
    4. Fresh: return the stored rows, no fetch and no write
    5. Otherwise fetch once, insert every returned record, return the new rows

    There is no retry. Without coalescing, concurrent cold misses on one key
    each fetch and insert, so duplicate rows for a key are possible.
    """

    def __init__(
        self,
        store: RowStore,
        registry: ResourceRegistry = DEFAULT_REGISTRY,
        clock: Clock = now_millis,
        coalesce_misses: bool = False,
        coalesce_timeout: float = 30.0,
    ):
        """
        Args:
            store: Opened row store, owned by the caller
            registry: Resource policies
            clock: Returns the current time in epoch milliseconds
            coalesce_misses: Share one fetch between concurrent misses on a key
            coalesce_timeout: Timeout for joining a coalesced fetch
        """
        self._store = store
        self._registry = registry
        self._clock = clock
        self._evaluator = FreshnessEvaluator(store, clock=clock)
        self._coalescer: Optional[RequestCoalescer] = (
            RequestCoalescer(timeout=coalesce_timeout) if coalesce_misses else None
        )

        # Stats tracking
        self._stats = {
            "hits_fresh": 0,
            "misses": 0,
            "evictions": 0,
            "upstream_errors": 0,
            "no_data": 0,
        }

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    async def resolve(
        self,
        resource_type: str,
        key: CacheKey,
        fetch_fn: FetchFn,
    ) -> List[CachedRow]:
        """
        Get rows for a resource from the store or from upstream.

        Args:
            resource_type: Registered resource type name
            key: Lookup key, tagged to match the resource's key kind
            fetch_fn: Provider + normalizer, called at most once

        Returns:
            Stored rows on a fresh hit, otherwise the newly inserted rows

        Raises:
            UnknownResource: Resource type is not registered
            KeyKindMismatch: Key tag does not match the policy
            StoreReadError / StoreWriteError: Row store failure
            NoDataAvailable: Upstream returned nothing; nothing was written
            UpstreamUnavailable: Upstream fetch failed; nothing was written
        """
        policy = self._registry.policy_for(resource_type)
        if key.kind is not policy.key_kind:
            raise KeyKindMismatch(
                f"{resource_type} is keyed by {policy.key_kind.value}, got {key.kind.value}"
            )

        rows = await self._store.find_by_key(policy, key)
        verdict = await self._evaluator.evaluate(policy, rows, key)

        if verdict.is_fresh:
            logger.debug(
                f"CACHE HIT (fresh): {resource_type} [{key}] [age={verdict.age_millis}ms]"
            )
            self._stats["hits_fresh"] += 1
            return list(verdict.rows)

        if verdict.kind is VerdictKind.EVICTED:
            logger.info(f"CACHE EXPIRED: {resource_type} [{key}] [age={verdict.age_millis}ms]")
            self._stats["evictions"] += 1
        else:
            logger.info(f"CACHE MISS: {resource_type} [{key}]")
        self._stats["misses"] += 1

        if self._coalescer is not None:
            try:
                rows = await self._coalescer.get_or_fetch(
                    f"{resource_type}:{key}",
                    lambda: self._fill(policy, key, fetch_fn),
                )
            except TimeoutError as e:
                self._stats["upstream_errors"] += 1
                raise UpstreamUnavailable(
                    f"{resource_type} fetch for {key} did not finish in time"
                ) from e
            return list(rows)
        return await self._fill(policy, key, fetch_fn)

    async def _fill(
        self,
        policy: ResourcePolicy,
        key: CacheKey,
        fetch_fn: FetchFn,
    ) -> List[CachedRow]:
        """Fetch from upstream and persist every returned record."""
        try:
            records = await fetch_fn(key)
        except NoUpstreamData as e:
            self._stats["no_data"] += 1
            logger.info(f"No upstream data for {policy.resource_type} [{key}]")
            raise NoDataAvailable(f"No {policy.resource_type} data for {key}") from e
        except (UpstreamError, asyncio.TimeoutError) as e:
            self._stats["upstream_errors"] += 1
            logger.warning(f"Upstream fetch failed for {policy.resource_type} [{key}]: {e}")
            raise UpstreamUnavailable(
                f"{policy.resource_type} provider unavailable: {e}"
            ) from e

        if not records:
            self._stats["no_data"] += 1
            logger.info(f"No upstream data for {policy.resource_type} [{key}]")
            raise NoDataAvailable(f"No {policy.resource_type} data for {key}")

        created_at = self._clock()
        inserted: List[CachedRow] = []
        for fields in records:
            # An issued write completes even if the caller goes away
            row = await asyncio.shield(self._store.insert(policy, fields, key, created_at))
            inserted.append(row)

        logger.debug(f"Stored {len(inserted)} {policy.resource_type} rows for {key}")
        return inserted

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._stats["hits_fresh"] + self._stats["misses"]
        hit_rate = (
            self._stats["hits_fresh"] / total_requests * 100 if total_requests > 0 else 0
        )
        stats: Dict[str, Any] = dict(self._stats)
        stats["hit_rate_percent"] = round(hit_rate, 1)
        stats["coalescing"] = self._coalescer is not None
        if self._coalescer is not None:
            stats["coalescer"] = self._coalescer.get_stats()
        return stats
