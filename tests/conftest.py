"""
Shared fixtures: temporary SQLite row stores, a controllable clock and
recording fetch functions.
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from city_explorer.cache import CacheKey, RowStore


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class RecordingFetch:
    """
    Async fetch function that returns canned records (or raises) and
    remembers every key it was called with.
    """

    def __init__(
        self,
        records: Optional[List[Dict[str, Any]]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.records = records or []
        self.error = error
        self.delay = delay
        self.calls: List[CacheKey] = []

    async def __call__(self, key: CacheKey) -> List[Dict[str, Any]]:
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [dict(record) for record in self.records]

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cache.db'}"


@pytest.fixture
def store(database_url):
    """An opened row store on a fresh database file."""
    row_store = RowStore(database_url)
    asyncio.run(row_store.open())
    yield row_store
    asyncio.run(row_store.close())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def weather_records():
    return [
        {"forecast": "Partly cloudy until afternoon.", "time": "Mon Jan 01 2024"},
        {"forecast": "Mostly cloudy throughout the day.", "time": "Tue Jan 02 2024"},
        {"forecast": "Light rain in the morning.", "time": "Wed Jan 03 2024"},
    ]


@pytest.fixture
def seattle_record():
    return {"formatted_query": "Seattle, WA, USA", "latitude": 47.6062095, "longitude": -122.3320708}
