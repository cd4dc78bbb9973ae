"""
Tests for the cache-aside orchestrator.

Scenarios run against a real SQLite row store with a fake clock and
recording fetch functions standing in for the upstream providers.
"""
import asyncio

import pytest

from city_explorer.cache import (
    CacheKey,
    CacheManager,
    KeyKindMismatch,
    NoDataAvailable,
    NoUpstreamData,
    StoreWriteError,
    UnknownResource,
    UpstreamError,
    UpstreamUnavailable,
    build_registry,
    policy_for,
)

from conftest import RecordingFetch

WEATHER = policy_for("weather")


@pytest.fixture
def manager(store, clock):
    return CacheManager(store, clock=clock)


class TestWeatherScenario:
    """weather, TTL 15000ms, location id 42."""

    def test_cold_fresh_then_expired(self, store, clock, manager, weather_records):
        fetch = RecordingFetch(weather_records)
        key = CacheKey.location(42)

        async def scenario():
            clock.now = 0
            first = await manager.resolve("weather", key, fetch)

            clock.now = 10000
            second = await manager.resolve("weather", key, fetch)
            fetches_after_second = fetch.call_count

            clock.now = 16000
            third = await manager.resolve("weather", key, fetch)
            stored = await store.find_by_key(WEATHER, key)
            return first, second, fetches_after_second, third, stored

        first, second, fetches_after_second, third, stored = asyncio.run(scenario())

        assert len(first) == 3
        assert all(row.created_at == 0 for row in first)

        # Fresh hit: identical rows, no fetch
        assert second == first
        assert fetches_after_second == 1

        # Expired: old rows gone, one new fetch, new timestamps
        assert fetch.call_count == 2
        assert all(row.created_at == 16000 for row in third)
        assert {row.id for row in third}.isdisjoint({row.id for row in first})
        assert stored == third

    def test_fetch_receives_the_key(self, manager, weather_records):
        fetch = RecordingFetch(weather_records)
        asyncio.run(manager.resolve("weather", CacheKey.location(42), fetch))
        assert fetch.calls == [CacheKey.location(42)]


class TestLocationScenario:
    """locations keyed by search string."""

    def test_seattle_is_stored_then_served(self, store, clock, manager, seattle_record):
        fetch = RecordingFetch([seattle_record])
        key = CacheKey.search("Seattle")

        async def scenario():
            first = await manager.resolve("locations", key, fetch)
            clock.now = 60 * 60 * 1000
            second = await manager.resolve("locations", key, fetch)
            stored = await store.find_by_key(policy_for("locations"), key)
            return first, second, stored

        first, second, stored = asyncio.run(scenario())
        assert len(first) == 1
        assert first[0].search_key == "Seattle"
        assert first[0].fields == seattle_record
        assert second == first
        assert stored == first
        assert fetch.call_count == 1


class TestEmptyStore:
    """Every resource type performs exactly one fetch on a cold store."""

    @pytest.mark.parametrize(
        "resource_type,key,records",
        [
            ("locations", CacheKey.search("Paris"), [{"formatted_query": "Paris, France", "latitude": 48.85, "longitude": 2.35}]),
            ("weather", CacheKey.location(1), [{"forecast": "Sunny", "time": "Mon Jan 01 2024"}]),
            ("events", CacheKey.location(1), [{"link": "https://e.example/1", "name": "Gig", "event_date": "Fri Mar 01 2024", "summary": "Live music"}] * 2),
            ("movies", CacheKey.location(1), [{"title": "Sleepless in Seattle", "total_votes": 1200, "popularity": 12.5}]),
            ("yelp", CacheKey.location(1), [{"name": "Pike Place Chowder", "rating": 4.5, "price": "$$"}] * 3),
        ],
    )
    def test_single_fetch_persists_exactly_the_records(self, store, manager, resource_type, key, records):
        fetch = RecordingFetch(records)

        async def scenario():
            resolved = await manager.resolve(resource_type, key, fetch)
            stored = await store.find_by_key(policy_for(resource_type), key)
            return resolved, stored

        resolved, stored = asyncio.run(scenario())
        assert fetch.call_count == 1
        assert resolved == stored
        assert len(stored) == len(records)
        for row, record in zip(stored, records):
            assert {k: row.fields[k] for k in record} == record


class TestUpstreamFailures:
    """Provider failures never write to the store."""

    def test_no_upstream_data_becomes_no_data_available(self, store, manager):
        fetch = RecordingFetch(error=NoUpstreamData("empty"))

        async def scenario():
            with pytest.raises(NoDataAvailable) as excinfo:
                await manager.resolve("events", CacheKey.location(5), fetch)
            return excinfo.value, await store.find_by_key(policy_for("events"), CacheKey.location(5))

        error, stored = asyncio.run(scenario())
        assert isinstance(error.__cause__, NoUpstreamData)
        assert not isinstance(error, UpstreamUnavailable)
        assert stored == []

    def test_empty_record_list_is_no_data(self, store, manager):
        with pytest.raises(NoDataAvailable):
            asyncio.run(manager.resolve("yelp", CacheKey.location(5), RecordingFetch([])))

    def test_upstream_error_becomes_upstream_unavailable(self, store, manager):
        fetch = RecordingFetch(error=UpstreamError("503 Service Unavailable"))

        async def scenario():
            with pytest.raises(UpstreamUnavailable) as excinfo:
                await manager.resolve("movies", CacheKey.location(5), fetch)
            return excinfo.value, await store.find_by_key(policy_for("movies"), CacheKey.location(5))

        error, stored = asyncio.run(scenario())
        assert isinstance(error.__cause__, UpstreamError)
        assert not isinstance(error, NoDataAvailable)
        assert stored == []

    def test_timeout_is_upstream_unavailable(self, manager):
        fetch = RecordingFetch(error=asyncio.TimeoutError())
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(manager.resolve("weather", CacheKey.location(5), fetch))

    def test_no_retry_after_failure(self, manager):
        fetch = RecordingFetch(error=UpstreamError("boom"))
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(manager.resolve("weather", CacheKey.location(5), fetch))
        assert fetch.call_count == 1


class TestProgrammingErrors:
    """Misconfiguration fails before any I/O."""

    def test_unknown_resource(self, manager):
        fetch = RecordingFetch([{}])
        with pytest.raises(UnknownResource):
            asyncio.run(manager.resolve("trails", CacheKey.location(1), fetch))
        assert fetch.call_count == 0

    def test_key_kind_mismatch(self, manager):
        fetch = RecordingFetch([{}])
        with pytest.raises(KeyKindMismatch):
            asyncio.run(manager.resolve("weather", CacheKey.search("Seattle"), fetch))
        assert fetch.call_count == 0


class TestPartialWrites:
    """A failed insert leaves earlier inserts in place."""

    def test_partial_set_is_kept(self, store, manager):
        records = [
            {"forecast": "Sunny", "time": "Mon"},
            {"forecast": "Rain", "humidity": 0.9},  # unregistered field
            {"forecast": "Snow", "time": "Wed"},
        ]

        async def scenario():
            with pytest.raises(StoreWriteError):
                await manager.resolve("weather", CacheKey.location(9), RecordingFetch(records))
            return await store.find_by_key(WEATHER, CacheKey.location(9))

        stored = asyncio.run(scenario())
        assert [row.fields["forecast"] for row in stored] == ["Sunny"]


class TestConcurrency:
    """Concurrent resolutions on one key."""

    def test_concurrent_cold_misses_each_fetch(self, store, clock, weather_records):
        """Without coalescing, duplicate rows are possible."""
        manager = CacheManager(store, clock=clock)
        # Slow upstream keeps every lookup ahead of the first insert
        fetch = RecordingFetch(weather_records[:1], delay=0.2)

        async def scenario():
            await asyncio.gather(*[
                manager.resolve("weather", CacheKey.location(3), fetch) for _ in range(3)
            ])
            return await store.find_by_key(WEATHER, CacheKey.location(3))

        stored = asyncio.run(scenario())
        assert fetch.call_count == 3
        assert len(stored) == 3

    def test_coalescing_shares_one_fetch(self, store, clock, weather_records):
        manager = CacheManager(store, clock=clock, coalesce_misses=True)
        fetch = RecordingFetch(weather_records, delay=0.2)

        async def scenario():
            results = await asyncio.gather(*[
                manager.resolve("weather", CacheKey.location(3), fetch) for _ in range(5)
            ])
            return results, await store.find_by_key(WEATHER, CacheKey.location(3))

        results, stored = asyncio.run(scenario())
        assert fetch.call_count == 1
        assert len(stored) == 3
        assert all(result == stored for result in results)
        # Each caller owns its list
        assert len({id(result) for result in results}) == len(results)
        assert manager.get_stats()["coalescer"]["active_requests"] == 0

    def test_coalesced_join_timeout_is_upstream_unavailable(self, store, clock, weather_records):
        manager = CacheManager(store, clock=clock, coalesce_misses=True, coalesce_timeout=0.05)
        fetch = RecordingFetch(weather_records, delay=0.3)

        async def scenario():
            return await asyncio.gather(
                manager.resolve("weather", CacheKey.location(3), fetch),
                manager.resolve("weather", CacheKey.location(3), fetch),
                return_exceptions=True,
            )

        first, second = asyncio.run(scenario())
        assert fetch.call_count == 1
        assert [row.fields["forecast"] for row in first] == [r["forecast"] for r in weather_records]
        assert isinstance(second, UpstreamUnavailable)
        assert second.code == UpstreamUnavailable.code
        assert isinstance(second.__cause__, TimeoutError)
        assert manager.get_stats()["upstream_errors"] == 1

    def test_cancelled_caller_does_not_abort_issued_insert(self, store, clock):
        """An insert that has started completes even if the caller is cancelled."""
        manager = CacheManager(store, clock=clock)

        async def scenario():
            started = asyncio.Event()
            original_insert = store.insert

            async def slow_insert(policy, fields, key, created_at):
                started.set()
                await asyncio.sleep(0.05)
                return await original_insert(policy, fields, key, created_at)

            store.insert = slow_insert
            try:
                task = asyncio.ensure_future(
                    manager.resolve("weather", CacheKey.location(8), RecordingFetch([{"forecast": "Fog"}]))
                )
                await started.wait()
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task
                await asyncio.sleep(0.2)
            finally:
                del store.insert
            return await store.find_by_key(WEATHER, CacheKey.location(8))

        stored = asyncio.run(scenario())
        assert [row.fields["forecast"] for row in stored] == ["Fog"]


class TestStats:
    """Counters exposed for /cache/stats."""

    def test_counts_hits_misses_and_evictions(self, store, clock, weather_records):
        manager = CacheManager(store, clock=clock)
        fetch = RecordingFetch(weather_records)
        key = CacheKey.location(11)

        async def scenario():
            await manager.resolve("weather", key, fetch)
            clock.now = 1000
            await manager.resolve("weather", key, fetch)
            clock.now = 100000
            await manager.resolve("weather", key, fetch)

        asyncio.run(scenario())
        stats = manager.get_stats()
        assert stats["hits_fresh"] == 1
        assert stats["misses"] == 2
        assert stats["evictions"] == 1
        assert stats["hit_rate_percent"] == 33.3
        assert stats["coalescing"] is False

    def test_custom_registry_ttl(self, store, clock, weather_records):
        manager = CacheManager(store, registry=build_registry({"weather": 60}), clock=clock)
        fetch = RecordingFetch(weather_records)

        async def scenario():
            await manager.resolve("weather", CacheKey.location(12), fetch)
            clock.now = 30000
            await manager.resolve("weather", CacheKey.location(12), fetch)

        asyncio.run(scenario())
        assert fetch.call_count == 1
