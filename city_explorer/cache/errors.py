"""
Error taxonomy for the cache-aside engine.

Provider-side errors (UpstreamError, NoUpstreamData) are raised by fetch
functions. The orchestrator re-raises them to callers as UpstreamUnavailable
and NoDataAvailable.
"""
from typing import Optional


class CacheError(Exception):
    """Base exception for the cache layer."""

    code = "CACHE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class UnknownResource(CacheError, KeyError):
    """Resource type is not present in the registry."""

    code = "UNKNOWN_RESOURCE"

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"Unknown resource type: {resource_type!r}")

    def __str__(self) -> str:
        return self.message


class KeyKindMismatch(CacheError, ValueError):
    """Cache key tag does not match the resource's key kind."""

    code = "KEY_KIND_MISMATCH"


class StoreReadError(CacheError):
    """Row store lookup failed."""

    code = "STORE_READ_ERROR"


class StoreWriteError(CacheError):
    """Row store insert or delete failed."""

    code = "STORE_WRITE_ERROR"


class UpstreamError(CacheError):
    """Provider fetch failed (transport error, timeout, malformed payload)."""

    code = "UPSTREAM_ERROR"


class NoUpstreamData(CacheError):
    """Provider answered with an empty result set."""

    code = "NO_UPSTREAM_DATA"


class UpstreamUnavailable(CacheError):
    """Resolution failed because the provider fetch failed."""

    code = "UPSTREAM_UNAVAILABLE"


class NoDataAvailable(CacheError):
    """Resolution found nothing upstream. Not a fault."""

    code = "NO_DATA_AVAILABLE"
