"""
Tests for freshness evaluation and lazy eviction.
"""
import asyncio
import logging

from city_explorer.cache import (
    CacheKey,
    FreshnessEvaluator,
    StoreWriteError,
    VerdictKind,
    policy_for,
)

WEATHER = policy_for("weather")
KEY = CacheKey.location(42)


def _seed(store, records, created_at):
    async def scenario():
        for record in records:
            await store.insert(WEATHER, record, KEY, created_at)
        return await store.find_by_key(WEATHER, KEY)
    return asyncio.run(scenario())


class TestVerdicts:
    """Fresh / Miss / Evicted decisions."""

    def test_no_rows_is_miss(self, store, clock):
        evaluator = FreshnessEvaluator(store, clock=clock)
        verdict = asyncio.run(evaluator.evaluate(WEATHER, [], KEY))
        assert verdict.kind is VerdictKind.MISS
        assert verdict.rows == ()

    def test_within_ttl_is_fresh(self, store, clock, weather_records):
        rows = _seed(store, weather_records, created_at=0)
        clock.now = 10000
        verdict = asyncio.run(FreshnessEvaluator(store, clock=clock).evaluate(WEATHER, rows, KEY))
        assert verdict.is_fresh
        assert list(verdict.rows) == rows
        assert verdict.age_millis == 10000

    def test_age_equal_to_ttl_is_fresh(self, store, clock, weather_records):
        """The TTL boundary is inclusive."""
        rows = _seed(store, weather_records, created_at=1000)
        clock.now = 1000 + WEATHER.ttl_millis
        verdict = asyncio.run(FreshnessEvaluator(store, clock=clock).evaluate(WEATHER, rows, KEY))
        assert verdict.kind is VerdictKind.FRESH

    def test_one_past_ttl_is_evicted(self, store, clock, weather_records):
        rows = _seed(store, weather_records, created_at=1000)
        clock.now = 1000 + WEATHER.ttl_millis + 1
        verdict = asyncio.run(FreshnessEvaluator(store, clock=clock).evaluate(WEATHER, rows, KEY))
        assert verdict.kind is VerdictKind.EVICTED
        assert verdict.rows == ()


class TestEviction:
    """Stale rows are deleted as a group."""

    def test_eviction_deletes_every_row_for_key(self, store, clock, weather_records):
        rows = _seed(store, weather_records, created_at=0)
        clock.now = 16000
        evaluator = FreshnessEvaluator(store, clock=clock)

        async def scenario():
            await evaluator.evaluate(WEATHER, rows, KEY)
            return await store.find_by_key(WEATHER, KEY)

        assert asyncio.run(scenario()) == []

    def test_first_row_decides_for_the_group(self, store, clock, weather_records):
        """A newer second row does not keep an old first row alive."""
        async def scenario():
            await store.insert(WEATHER, weather_records[0], KEY, 0)
            await store.insert(WEATHER, weather_records[1], KEY, 15000)
            rows = await store.find_by_key(WEATHER, KEY)
            clock.now = 16000
            verdict = await FreshnessEvaluator(store, clock=clock).evaluate(WEATHER, rows, KEY)
            return verdict, await store.find_by_key(WEATHER, KEY)

        verdict, remaining = asyncio.run(scenario())
        assert verdict.kind is VerdictKind.EVICTED
        assert remaining == []

    def test_delete_failure_is_logged_not_raised(self, store, clock, weather_records, caplog):
        rows = _seed(store, weather_records, created_at=0)
        clock.now = 20000

        class FailingDeleteStore:
            async def delete_by_key(self, policy, key):
                raise StoreWriteError("database is locked")

        evaluator = FreshnessEvaluator(FailingDeleteStore(), clock=clock)
        with caplog.at_level(logging.WARNING, logger="cache.freshness"):
            verdict = asyncio.run(evaluator.evaluate(WEATHER, rows, KEY))

        assert verdict.kind is VerdictKind.EVICTED
        assert "Eviction failed" in caplog.text
