"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class KeyKind(Enum):
    """How rows of a resource are keyed in storage."""
    SEARCH_QUERY = "search_query"   # free-text search string
    LOCATION_ID = "location_id"     # id of a cached location row


class VerdictKind(Enum):
    """Outcome of a freshness check."""
    FRESH = "fresh"       # Within TTL, serve stored rows
    MISS = "miss"         # Nothing stored for the key
    EVICTED = "evicted"   # Stored rows were past TTL and deleted


@dataclass(frozen=True)
class ResourcePolicy:
    """
    Static caching policy for one resource type.

    `table` and `fields` are the only identifiers ever interpolated into
    SQL, so they must only come from the registry.
    """
    resource_type: str
    ttl_millis: int
    key_kind: KeyKind
    table: str
    fields: Tuple[str, ...]

    def __post_init__(self):
        if self.ttl_millis <= 0:
            raise ValueError(f"TTL for {self.resource_type} must be positive")

    @property
    def key_column(self) -> str:
        """Name of the storage column holding the lookup key."""
        return self.key_kind.value


@dataclass(frozen=True)
class CacheKey:
    """A lookup key tagged with the kind of resource it addresses."""
    kind: KeyKind
    value: Union[str, int]

    @classmethod
    def search(cls, query: str) -> "CacheKey":
        return cls(KeyKind.SEARCH_QUERY, query)

    @classmethod
    def location(cls, location_id: int) -> "CacheKey":
        return cls(KeyKind.LOCATION_ID, int(location_id))

    def __str__(self) -> str:
        return f"{self.kind.value}={self.value}"


@dataclass(frozen=True)
class CachedRow:
    """A persisted, normalized upstream record."""
    id: int
    location_key: Optional[int]
    search_key: Optional[str]
    fields: Dict[str, Any]
    created_at: int  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the column layout used in API responses."""
        result: Dict[str, Any] = {"id": self.id}
        if self.search_key is not None:
            result["search_query"] = self.search_key
        if self.location_key is not None:
            result["location_id"] = self.location_key
        result.update(self.fields)
        result["created_at"] = self.created_at
        return result


@dataclass(frozen=True)
class FreshnessVerdict:
    """
    Transient result of evaluating stored rows against a policy.

    `rows` is only populated for FRESH verdicts.
    """
    kind: VerdictKind
    rows: Tuple[CachedRow, ...] = field(default_factory=tuple)
    age_millis: Optional[int] = None

    @classmethod
    def fresh(cls, rows, age_millis: int) -> "FreshnessVerdict":
        return cls(VerdictKind.FRESH, tuple(rows), age_millis)

    @classmethod
    def miss(cls) -> "FreshnessVerdict":
        return cls(VerdictKind.MISS)

    @classmethod
    def evicted(cls, age_millis: int) -> "FreshnessVerdict":
        return cls(VerdictKind.EVICTED, age_millis=age_millis)

    @property
    def is_fresh(self) -> bool:
        return self.kind is VerdictKind.FRESH
