"""
Request coalescing for concurrent cold misses.

When enabled, concurrent resolutions that miss on the same key share one
upstream fetch and one set of inserted rows instead of each fetching and
inserting independently.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress miss."""
    future: asyncio.Future
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent misses for the same cache key share one fetch.

    Pattern:
    - First caller for a key runs the fetch as a task
    - Later callers for the same key await the same task
    - When the task completes, every caller receives its result or error

    The shared task is shielded, so one waiter being cancelled does not
    cancel the fetch for the others.

    Usage:
        coalescer = RequestCoalescer()
        rows = await coalescer.get_or_fetch(
            cache_key="weather:location_id=42",
            fetch_fn=lambda: fill_from_upstream(),
        )
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Max seconds a joining caller waits for an in-flight fetch
        """
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._timeout = timeout

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight fetch or start a new one.

        Raises:
            TimeoutError: If waiting on another caller's fetch times out
            Exception: Any error from fetch_fn is propagated to every caller
        """
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
            try:
                return await asyncio.wait_for(
                    asyncio.shield(in_flight.future), timeout=self._timeout
                )
            except asyncio.TimeoutError:
                logger.error(f"Timeout waiting for coalesced request: {cache_key}")
                raise TimeoutError(
                    f"Request for {cache_key} timed out after {self._timeout}s"
                ) from None

        logger.debug(f"Initiating fetch for {cache_key}")
        task = asyncio.ensure_future(fetch_fn())
        self._in_flight[cache_key] = InFlightRequest(future=task)
        task.add_done_callback(lambda done: self._finish(cache_key, done))
        return await asyncio.shield(task)

    def _finish(self, cache_key: str, task: asyncio.Future) -> None:
        """Clear the in-flight entry and consume the task's outcome."""
        self._in_flight.pop(cache_key, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Fetch failed for {cache_key}: {error}")

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight fetches."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
