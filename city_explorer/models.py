"""
Database models for City Explorer
SQLAlchemy ORM models, one table per cached resource type.
Every table carries both key columns; exactly one is populated per row.
"""
from sqlalchemy import BigInteger, CheckConstraint, Column, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _key_table_args(tablename: str):
    return (
        CheckConstraint(
            "(search_query IS NULL) <> (location_id IS NULL)",
            name=f"ck_{tablename}_one_key",
        ),
        Index(f"ix_{tablename}_search_query", "search_query"),
        Index(f"ix_{tablename}_location_id", "location_id"),
    )


class CachedRowMixin:
    """Columns shared by every cached resource table."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    search_query = Column(String, nullable=True)
    location_id = Column(Integer, nullable=True)
    created_at = Column(BigInteger, nullable=False)  # epoch milliseconds


class Location(CachedRowMixin, Base):
    """
    Geocoded location keyed by the user's search string.
    Its id is the location_id key for every other resource.
    """
    __tablename__ = "locations"
    __table_args__ = _key_table_args("locations")

    formatted_query = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    def __repr__(self):
        return f"<Location(id={self.id}, search_query='{self.search_query}')>"


class Weather(CachedRowMixin, Base):
    """Daily forecast summary"""
    __tablename__ = "weathers"
    __table_args__ = _key_table_args("weathers")

    forecast = Column(String, nullable=True)
    time = Column(String, nullable=True)

    def __repr__(self):
        return f"<Weather(location_id={self.location_id}, time='{self.time}')>"


class Event(CachedRowMixin, Base):
    """Local event listing"""
    __tablename__ = "events"
    __table_args__ = _key_table_args("events")

    link = Column(String, nullable=True)
    name = Column(String, nullable=True)
    event_date = Column(String, nullable=True)
    summary = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Event(location_id={self.location_id}, name='{self.name}')>"


class Movie(CachedRowMixin, Base):
    """Movie matching the location's search string"""
    __tablename__ = "movies"
    __table_args__ = _key_table_args("movies")

    title = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    average_votes = Column(Float, nullable=True)
    total_votes = Column(Integer, nullable=True)
    image_url = Column(String, nullable=True)
    popularity = Column(Float, nullable=True)
    released_on = Column(String, nullable=True)

    def __repr__(self):
        return f"<Movie(location_id={self.location_id}, title='{self.title}')>"


class Yelp(CachedRowMixin, Base):
    """Local business search result"""
    __tablename__ = "yelps"
    __table_args__ = _key_table_args("yelps")

    name = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    price = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    url = Column(String, nullable=True)

    def __repr__(self):
        return f"<Yelp(location_id={self.location_id}, name='{self.name}')>"
