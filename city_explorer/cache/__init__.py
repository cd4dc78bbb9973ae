"""
Persistent cache-aside engine with per-resource TTL and lazy eviction.
"""
from .core import (
    CachedRow,
    CacheKey,
    FreshnessVerdict,
    KeyKind,
    ResourcePolicy,
    VerdictKind,
)
from .errors import (
    CacheError,
    KeyKindMismatch,
    NoDataAvailable,
    NoUpstreamData,
    StoreReadError,
    StoreWriteError,
    UnknownResource,
    UpstreamError,
    UpstreamUnavailable,
)
from .ttl_policies import (
    DEFAULT_REGISTRY,
    RESOURCE_POLICIES,
    ResourceRegistry,
    build_registry,
    policy_for,
)
from .store import RowStore
from .freshness import FreshnessEvaluator, now_millis
from .coalescer import RequestCoalescer
from .manager import CacheManager, FetchFn

__all__ = [
    # Core types
    "CachedRow",
    "CacheKey",
    "FreshnessVerdict",
    "KeyKind",
    "ResourcePolicy",
    "VerdictKind",
    # Errors
    "CacheError",
    "KeyKindMismatch",
    "NoDataAvailable",
    "NoUpstreamData",
    "StoreReadError",
    "StoreWriteError",
    "UnknownResource",
    "UpstreamError",
    "UpstreamUnavailable",
    # Registry
    "DEFAULT_REGISTRY",
    "RESOURCE_POLICIES",
    "ResourceRegistry",
    "build_registry",
    "policy_for",
    # Store and freshness
    "RowStore",
    "FreshnessEvaluator",
    "now_millis",
    # Coalescing
    "RequestCoalescer",
    # Manager
    "CacheManager",
    "FetchFn",
]
