"""
Upstream fetches for each resource type.

The fetch_* functions are blocking: they call the provider, check for an
empty result set and normalize every record. The *_fetcher factories wrap
them as async fetch functions for CacheManager.resolve(), running the
blocking call in a worker thread.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List

from city_explorer.cache.core import CacheKey
from city_explorer.cache.errors import NoUpstreamData, UpstreamError
from city_explorer.cache.manager import FetchFn
from config.settings import settings
from .client import get_json
from .normalizers import (
    normalize_event,
    normalize_location,
    normalize_movie,
    normalize_weather,
    normalize_yelp,
)

logger = logging.getLogger("providers.fetchers")

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
WEATHER_URL = "https://api.darksky.net/forecast"
EVENTS_URL = "https://www.eventbriteapi.com/v3/events/search/"
MOVIES_URL = "https://api.themoviedb.org/3/search/movie"
YELP_URL = "https://api.yelp.com/v3/businesses/search"

Record = Dict[str, Any]


def _extract_list(payload: Any, *path: str) -> List[Record]:
    """
    Walk `path` into a JSON payload and return the list found there.

    Raises:
        UpstreamError: If the path is missing or does not end at a list
        NoUpstreamData: If the list is empty
    """
    node = payload
    for part in path:
        if not isinstance(node, dict) or part not in node:
            raise UpstreamError(f"Unexpected payload: missing '{'.'.join(path)}'")
        node = node[part]
    if not isinstance(node, list):
        raise UpstreamError(f"Unexpected payload: '{'.'.join(path)}' is not a list")
    if not node:
        raise NoUpstreamData(f"Empty result set at '{'.'.join(path)}'")
    return node


def _normalize_all(records: List[Record], normalizer: Callable[[Record], Record]) -> List[Record]:
    try:
        return [normalizer(record) for record in records]
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamError(f"Malformed upstream record: {e}") from e


# ===== BLOCKING FETCHES =====

def fetch_location(query: str) -> List[Record]:
    """Geocode a search string. Only the best match is kept."""
    payload = get_json(GEOCODE_URL, params={"address": query, "key": settings.geocode_api_key})
    results = _extract_list(payload, "results")
    return _normalize_all(results[:1], normalize_location)


def fetch_weather(latitude: float, longitude: float) -> List[Record]:
    """Daily forecast summaries for a coordinate."""
    payload = get_json(f"{WEATHER_URL}/{settings.weather_api_key}/{latitude},{longitude}")
    logger.info("Weather from API")
    return _normalize_all(_extract_list(payload, "daily", "data"), normalize_weather)


def fetch_events(latitude: float, longitude: float) -> List[Record]:
    """Eventbrite events near a coordinate."""
    payload = get_json(
        EVENTS_URL,
        params={
            "token": settings.eventbrite_api_key,
            "location.latitude": latitude,
            "location.longitude": longitude,
        },
    )
    logger.info("Events from API")
    return _normalize_all(_extract_list(payload, "events"), normalize_event)


def fetch_movies(search_query: str) -> List[Record]:
    """TMDB movies matching the location's search string."""
    payload = get_json(
        MOVIES_URL,
        params={
            "api_key": settings.movie_api_key,
            "language": "en-US",
            "query": search_query,
            "page": 1,
            "include_adult": "false",
        },
    )
    logger.info("Movies from API")
    return _normalize_all(_extract_list(payload, "results"), normalize_movie)


def fetch_yelp(latitude: float, longitude: float) -> List[Record]:
    """Yelp businesses near a coordinate."""
    payload = get_json(
        YELP_URL,
        params={"latitude": latitude, "longitude": longitude},
        headers={"Authorization": f"Bearer {settings.yelp_api_key}"},
    )
    logger.info("Yelp from API")
    return _normalize_all(_extract_list(payload, "businesses"), normalize_yelp)


# ===== ASYNC FETCHERS =====

def _threaded(fn: Callable[..., List[Record]], *args: Any) -> FetchFn:
    async def fetch(key: CacheKey) -> List[Record]:
        return await asyncio.to_thread(fn, *args)
    return fetch


def location_fetcher(query: str) -> FetchFn:
    return _threaded(fetch_location, query)


def weather_fetcher(latitude: float, longitude: float) -> FetchFn:
    return _threaded(fetch_weather, latitude, longitude)


def events_fetcher(latitude: float, longitude: float) -> FetchFn:
    return _threaded(fetch_events, latitude, longitude)


def movies_fetcher(search_query: str) -> FetchFn:
    return _threaded(fetch_movies, search_query)


def yelp_fetcher(latitude: float, longitude: float) -> FetchFn:
    return _threaded(fetch_yelp, latitude, longitude)
