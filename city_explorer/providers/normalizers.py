"""
Normalizers: strict mapping from raw provider records to canonical fields.

Each function takes one raw record and returns a dict whose keys are exactly
the registered fields of its resource type.
"""
from typing import Any, Dict

from city_explorer.utils.helpers import (
    day_from_epoch,
    day_from_iso,
    safe_float,
    safe_int,
    safe_str,
    truncate,
)

TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/original"
OVERVIEW_LIMIT = 750


def normalize_location(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Google geocoding result -> location fields."""
    coords = raw["geometry"]["location"]
    return {
        "formatted_query": raw["formatted_address"],
        "latitude": float(coords["lat"]),
        "longitude": float(coords["lng"]),
    }


def normalize_weather(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Dark Sky daily data point -> weather fields."""
    return {
        "forecast": safe_str(raw.get("summary")),
        "time": day_from_epoch(raw.get("time")),
    }


def normalize_event(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Eventbrite event -> event fields."""
    name = raw.get("name") or {}
    start = raw.get("start") or {}
    return {
        "link": safe_str(raw.get("url")),
        "name": safe_str(name.get("text")),
        "event_date": day_from_iso(start.get("local")),
        "summary": safe_str(raw.get("summary")),
    }


def normalize_movie(raw: Dict[str, Any]) -> Dict[str, Any]:
    """TMDB search result -> movie fields."""
    poster = raw.get("poster_path")
    return {
        "title": safe_str(raw.get("original_title") or raw.get("title")),
        "overview": truncate(safe_str(raw.get("overview")), OVERVIEW_LIMIT),
        "average_votes": safe_float(raw.get("vote_average")),
        "total_votes": safe_int(raw.get("vote_count")),
        "image_url": f"{TMDB_IMAGE_BASE}{poster}" if poster else None,
        "popularity": safe_float(raw.get("popularity")),
        "released_on": safe_str(raw.get("release_date")),
    }


def normalize_yelp(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Yelp business -> yelp fields."""
    return {
        "name": safe_str(raw.get("name")),
        "image_url": safe_str(raw.get("image_url")),
        "price": safe_str(raw.get("price")),
        "rating": safe_float(raw.get("rating")),
        "url": safe_str(raw.get("url")),
    }
