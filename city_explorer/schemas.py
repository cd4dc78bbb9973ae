"""
Pydantic schemas for API responses
One schema per cached resource type, mirroring its table columns.
"""
from typing import Optional

from pydantic import BaseModel


class CachedRowBase(BaseModel):
    """Columns common to every cached row"""
    id: int
    created_at: int


# ===== LOCATION =====

class Location(CachedRowBase):
    """Geocoded location; its id keys every other resource"""
    search_query: str
    formatted_query: str
    latitude: float
    longitude: float


# ===== LOCATION-DEPENDENT RESOURCES =====

class LocationScoped(CachedRowBase):
    location_id: int


class Weather(LocationScoped):
    forecast: Optional[str] = None
    time: Optional[str] = None


class Event(LocationScoped):
    link: Optional[str] = None
    name: Optional[str] = None
    event_date: Optional[str] = None
    summary: Optional[str] = None


class Movie(LocationScoped):
    title: Optional[str] = None
    overview: Optional[str] = None
    average_votes: Optional[float] = None
    total_votes: Optional[int] = None
    image_url: Optional[str] = None
    popularity: Optional[float] = None
    released_on: Optional[str] = None


class Yelp(LocationScoped):
    name: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None
    rating: Optional[float] = None
    url: Optional[str] = None


# ===== ERRORS =====

class ErrorResponse(BaseModel):
    """Error body returned for failed resolutions"""
    code: str
    message: str
