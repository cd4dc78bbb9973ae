"""
TTL configuration and resource-type-to-storage mapping.
"""
from dataclasses import replace
from typing import Dict, Iterator, Mapping, Optional

from .core import KeyKind, ResourcePolicy
from .errors import UnknownResource


SECOND = 1000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR


# Resource policies by resource type
RESOURCE_POLICIES: Dict[str, ResourcePolicy] = {
    "locations": ResourcePolicy(
        resource_type="locations",
        ttl_millis=30 * DAY,
        key_kind=KeyKind.SEARCH_QUERY,
        table="locations",
        fields=("formatted_query", "latitude", "longitude"),
    ),
    "weather": ResourcePolicy(
        resource_type="weather",
        ttl_millis=15 * SECOND,
        key_kind=KeyKind.LOCATION_ID,
        table="weathers",
        fields=("forecast", "time"),
    ),
    "events": ResourcePolicy(
        resource_type="events",
        ttl_millis=6 * HOUR,
        key_kind=KeyKind.LOCATION_ID,
        table="events",
        fields=("link", "name", "event_date", "summary"),
    ),
    "movies": ResourcePolicy(
        resource_type="movies",
        ttl_millis=30 * DAY,
        key_kind=KeyKind.LOCATION_ID,
        table="movies",
        fields=(
            "title",
            "overview",
            "average_votes",
            "total_votes",
            "image_url",
            "popularity",
            "released_on",
        ),
    ),
    "yelp": ResourcePolicy(
        resource_type="yelp",
        ttl_millis=24 * HOUR,
        key_kind=KeyKind.LOCATION_ID,
        table="yelps",
        fields=("name", "image_url", "price", "rating", "url"),
    ),
}


class ResourceRegistry:
    """
    Closed, read-only table of resource policies.

    Lookups for unregistered types raise UnknownResource; there is no
    fallback policy.
    """

    def __init__(self, policies: Mapping[str, ResourcePolicy]):
        self._policies: Dict[str, ResourcePolicy] = {}
        for name, policy in policies.items():
            if name != policy.resource_type:
                raise ValueError(
                    f"Registry key {name!r} does not match policy {policy.resource_type!r}"
                )
            self._policies[name] = policy

    def policy_for(self, resource_type: str) -> ResourcePolicy:
        """Get the policy for a resource type."""
        try:
            return self._policies[resource_type]
        except KeyError:
            raise UnknownResource(resource_type) from None

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._policies

    def __iter__(self) -> Iterator[ResourcePolicy]:
        return iter(self._policies.values())

    def __len__(self) -> int:
        return len(self._policies)

    @property
    def resource_types(self):
        return tuple(self._policies)


def build_registry(
    overrides_seconds: Optional[Mapping[str, int]] = None,
) -> ResourceRegistry:
    """
    Build a registry from the default policies.

    Args:
        overrides_seconds: Optional TTL overrides in seconds, by resource type

    Returns:
        ResourceRegistry

    Raises:
        UnknownResource: If an override names an unregistered resource type
    """
    policies = dict(RESOURCE_POLICIES)
    for resource_type, ttl_seconds in (overrides_seconds or {}).items():
        if resource_type not in policies:
            raise UnknownResource(resource_type)
        policies[resource_type] = replace(
            policies[resource_type], ttl_millis=int(ttl_seconds * SECOND)
        )
    return ResourceRegistry(policies)


DEFAULT_REGISTRY = ResourceRegistry(RESOURCE_POLICIES)


def policy_for(resource_type: str) -> ResourcePolicy:
    """Get a policy from the default registry."""
    return DEFAULT_REGISTRY.policy_for(resource_type)
