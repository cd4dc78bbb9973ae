"""
Upstream providers and normalizers for each cached resource type.
"""
from .client import get_json
from .fetchers import (
    events_fetcher,
    fetch_events,
    fetch_location,
    fetch_movies,
    fetch_weather,
    fetch_yelp,
    location_fetcher,
    movies_fetcher,
    weather_fetcher,
    yelp_fetcher,
)
from .normalizers import (
    normalize_event,
    normalize_location,
    normalize_movie,
    normalize_weather,
    normalize_yelp,
)

__all__ = [
    "get_json",
    # Blocking fetches
    "fetch_location",
    "fetch_weather",
    "fetch_events",
    "fetch_movies",
    "fetch_yelp",
    # Async fetchers
    "location_fetcher",
    "weather_fetcher",
    "events_fetcher",
    "movies_fetcher",
    "yelp_fetcher",
    # Normalizers
    "normalize_location",
    "normalize_weather",
    "normalize_event",
    "normalize_movie",
    "normalize_yelp",
]
